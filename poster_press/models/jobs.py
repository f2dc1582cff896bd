# poster_press/models/jobs.py
"""
Job tracking models and in-memory queue.

Internal records for render jobs and templates, plus the boundary
validation that turns backend rows into JobRecords.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from poster_press.models.store import JobQueue, validate_fields

logger = logging.getLogger(__name__)


class JobState(Enum):
    """Job lifecycle states."""

    QUEUED = "queued"
    CLAIMED = "claimed"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RenderMode(Enum):
    """Rendering variants controlling watermarking and source packaging."""

    PREVIEW = "preview"
    FINAL = "final"
    PAID = "paid"

    @property
    def watermarked(self) -> bool:
        return self is RenderMode.PREVIEW

    @property
    def includes_sources(self) -> bool:
        return self is RenderMode.PAID

    @property
    def artifact_name(self) -> str:
        """File name of the published PDF for this mode."""
        return "preview.pdf" if self is RenderMode.PREVIEW else "final.pdf"


@dataclass
class JobRecord:
    """
    Internal job record.

    Tracks one render request from queued to a terminal state.
    """

    job_id: str
    project_id: str
    template_id: str
    mode: RenderMode
    state: JobState
    created_at: datetime
    updated_at: datetime | None = None
    error_code: str | None = None  # ErrorCode value if state=FAILED
    error_detail: str | None = None  # Bounded diagnostic if state=FAILED
    pdf_path: str | None = None
    zip_path: str | None = None

    @property
    def output_paths(self) -> list[str]:
        """Published artifact keys, PDF first."""
        return [p for p in (self.pdf_path, self.zip_path) if p]


@dataclass(frozen=True)
class Template:
    """A named LaTeX skeleton with {{PLACEHOLDER}} tokens."""

    template_id: str
    source: str


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    # Postgres emits "Z" suffixes that fromisoformat rejects before 3.11
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def job_from_row(row: dict[str, Any]) -> JobRecord:
    """
    Validate a backend row into a JobRecord.

    Accepts both local column names (``id``/``state``) and the remote
    table's (``id``/``status``).

    Raises:
        ValueError: If required fields are missing or enum values are unknown
    """
    try:
        job_id = str(row["id"])
        project_id = str(row["project_id"])
        template_id = str(row["template_id"])
    except KeyError as e:
        raise ValueError(f"Job row missing required field {e}") from e

    state_value = row.get("state") or row.get("status") or JobState.QUEUED.value

    return JobRecord(
        job_id=job_id,
        project_id=project_id,
        template_id=template_id,
        mode=RenderMode(row.get("mode") or RenderMode.PREVIEW.value),
        state=JobState(state_value),
        created_at=_parse_timestamp(row.get("created_at")) or datetime.now(timezone.utc),
        updated_at=_parse_timestamp(row.get("updated_at")),
        error_code=row.get("error_code"),
        error_detail=row.get("error_detail"),
        pdf_path=row.get("pdf_path"),
        zip_path=row.get("zip_path"),
    )


class InMemoryJobQueue(JobQueue):
    """
    Simple in-memory job queue.

    Safe for any number of coroutines in one event loop: an asyncio.Lock
    serializes claims.
    """

    def __init__(self) -> None:
        """Initialize empty job queue."""
        self._jobs: dict[str, JobRecord] = {}
        self._lock = asyncio.Lock()
        logger.info("Initialized InMemoryJobQueue")

    async def add(self, record: JobRecord) -> None:
        if record.job_id in self._jobs:
            raise ValueError(f"Job {record.job_id} already exists")

        self._jobs[record.job_id] = replace(record)
        logger.info(f"Added job {record.job_id} to queue")

    async def get(self, job_id: str) -> JobRecord | None:
        record = self._jobs.get(job_id)
        return replace(record) if record else None

    async def list_all(self) -> list[JobRecord]:
        return sorted(
            (replace(r) for r in self._jobs.values()),
            key=lambda r: r.created_at,
            reverse=True,
        )

    async def update(self, job_id: str, **kwargs) -> None:
        validate_fields(kwargs)

        async with self._lock:
            record = self._jobs.get(job_id)
            if not record:
                raise ValueError(f"Job {job_id} not found")

            for key, value in kwargs.items():
                setattr(record, key, value)
            record.updated_at = datetime.now(timezone.utc)

        logger.info(f"Updated job {job_id}: {list(kwargs.keys())}")

    async def claim_next(self) -> JobRecord | None:
        async with self._lock:
            queued = [r for r in self._jobs.values() if r.state == JobState.QUEUED]
            if not queued:
                return None

            record = min(queued, key=lambda r: r.created_at)
            record.state = JobState.CLAIMED
            record.updated_at = datetime.now(timezone.utc)
            return replace(record)

    async def requeue_stale_claims(self, older_than_seconds: float) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=older_than_seconds)
        requeued = 0

        async with self._lock:
            for record in self._jobs.values():
                if record.state != JobState.CLAIMED:
                    continue
                if record.updated_at is not None and record.updated_at > cutoff:
                    continue
                record.state = JobState.QUEUED
                record.updated_at = datetime.now(timezone.utc)
                requeued += 1

        if requeued:
            logger.warning(f"Requeued {requeued} stale claimed job(s)")
        return requeued


def generate_job_id() -> str:
    """
    Generate a unique job ID.

    Returns:
        12-character hex string (UUID4 truncated)
    """
    return uuid4().hex[:12]
