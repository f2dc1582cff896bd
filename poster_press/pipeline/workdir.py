# poster_press/pipeline/workdir.py
"""Per-run working directory layout."""

import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

SOURCE_NAME = "main.tex"


@dataclass
class WorkingDirectory:
    """
    Job-scoped scratch tree.

    Layout::

        <root>/poster/main.tex
        <root>/poster/assets/
        <root>/out/
    """

    root: Path

    @property
    def poster_dir(self) -> Path:
        return self.root / "poster"

    @property
    def assets_dir(self) -> Path:
        return self.poster_dir / "assets"

    @property
    def out_dir(self) -> Path:
        return self.root / "out"

    @property
    def source_path(self) -> Path:
        return self.poster_dir / SOURCE_NAME

    @classmethod
    def create(cls, parent: str | Path | None = None, job_id: str = "") -> "WorkingDirectory":
        """
        Create a fresh, uniquely named tree.

        mkdtemp guarantees a new directory per call, so concurrent workers
        sharing a parent never collide.
        """
        if parent is not None:
            Path(parent).mkdir(parents=True, exist_ok=True)
        prefix = f"poster-{job_id}-" if job_id else "poster-"
        workdir = cls(Path(tempfile.mkdtemp(prefix=prefix, dir=parent)))
        workdir.assets_dir.mkdir(parents=True)
        workdir.out_dir.mkdir()
        return workdir

    def cleanup(self) -> None:
        """Remove the tree; failures are logged, not raised."""
        try:
            shutil.rmtree(self.root)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to remove working directory {self.root}: {e}")
