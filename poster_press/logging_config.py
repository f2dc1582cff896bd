# poster_press/logging_config.py
"""
Stderr-only logging configuration.

The worker is usually run under a process supervisor that collects stderr,
so JSON lines are the default for unattended runs and plain text for the CLI.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

TEXT_FORMAT = "%(asctime)s  %(levelname)-7s  %(name)s  %(message)s"


class JsonFormatter(logging.Formatter):
    """Formats log records as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON line."""
        log_data: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        job_id = getattr(record, "job_id", None)
        if job_id is not None:
            log_data["job_id"] = job_id

        if record.exc_info:
            log_data["exc"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def configure_logging(level: str = "INFO", json_output: bool = True) -> None:
    """
    Configure root logging to stderr.

    Clears existing handlers so repeated calls don't duplicate output.

    Args:
        level: Root log level name
        json_output: JSON lines if True, human-readable text otherwise
    """
    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%H:%M:%S"))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
