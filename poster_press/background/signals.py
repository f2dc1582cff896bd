# poster_press/background/signals.py
"""
Graceful shutdown signal handling for Windows and Unix.

Registers SIGINT/SIGTERM handlers that set a shutdown event; whoever owns
the lifecycle awaits that event and shuts down in order.
"""

import asyncio
import logging
import signal

logger = logging.getLogger(__name__)


def setup_signal_handlers(shutdown_event: asyncio.Event) -> None:
    """
    Set up signal handlers for graceful shutdown.

    Handles SIGINT (Ctrl+C) and SIGTERM with platform-specific fallbacks.

    On Windows (ProactorEventLoop), add_signal_handler is not supported,
    so we fall back to signal.signal().

    Args:
        shutdown_event: Event set when a termination signal arrives
    """
    loop = asyncio.get_running_loop()

    def _request_shutdown(sig_name: str) -> None:
        logger.info(f"Received {sig_name}, shutting down gracefully...")
        shutdown_event.set()

    def _signal_callback(sig_num, frame) -> None:
        """Fallback signal handler for Windows."""
        sig_name = signal.Signals(sig_num).name
        loop.call_soon_threadsafe(_request_shutdown, sig_name)

    try:
        loop.add_signal_handler(signal.SIGINT, _request_shutdown, "SIGINT")
        loop.add_signal_handler(signal.SIGTERM, _request_shutdown, "SIGTERM")
        logger.info("Signal handlers registered (loop-based)")

    except NotImplementedError:
        signal.signal(signal.SIGINT, _signal_callback)
        signal.signal(signal.SIGTERM, _signal_callback)
        logger.info("Signal handlers registered (fallback for Windows)")
