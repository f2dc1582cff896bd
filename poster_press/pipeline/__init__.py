"""Render pipeline: stage sequencing, working directories and source packaging."""

from .orchestrator import STAGES, PipelineResult, RenderPipeline
from .packaging import build_source_archive
from .workdir import WorkingDirectory

__all__ = [
    "RenderPipeline",
    "PipelineResult",
    "STAGES",
    "WorkingDirectory",
    "build_source_archive",
]
