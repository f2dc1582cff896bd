# poster_press/models/__init__.py
"""
Data models for poster-press.

Provides job records, templates and the job queue backends.
"""

from poster_press.models.jobs import (
    InMemoryJobQueue,
    JobRecord,
    JobState,
    RenderMode,
    Template,
    generate_job_id,
    job_from_row,
)
from poster_press.models.sqlite_store import SQLiteJobQueue
from poster_press.models.store import JobQueue

__all__ = [
    "JobQueue",
    "JobState",
    "RenderMode",
    "JobRecord",
    "Template",
    "InMemoryJobQueue",
    "SQLiteJobQueue",
    "generate_job_id",
    "job_from_row",
]
