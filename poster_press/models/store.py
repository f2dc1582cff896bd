# poster_press/models/store.py
"""
Job queue protocol definition.

Defines the abstract interface that InMemoryJobQueue, SQLiteJobQueue and
RestJobQueue implement.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from poster_press.models.jobs import JobRecord

# Fields a status patch may touch; updated_at is always stamped by the queue
UPDATABLE_FIELDS = frozenset(
    {"state", "error_code", "error_detail", "pdf_path", "zip_path"}
)


class JobQueue(ABC):
    """
    Abstract base class for job queue implementations.

    The one hard guarantee every implementation must give is that
    claim_next() hands each queued job to exactly one caller.
    """

    @abstractmethod
    async def claim_next(self) -> "JobRecord | None":
        """
        Atomically claim the oldest queued job.

        Marks the job as claimed and stamps updated_at before returning it.

        Returns:
            The claimed JobRecord, or None if nothing is queued
        """

    @abstractmethod
    async def update(self, job_id: str, **kwargs) -> None:
        """
        Apply a partial update to a job and stamp updated_at.

        Args:
            job_id: Job identifier
            **kwargs: Fields to update (see UPDATABLE_FIELDS)

        Raises:
            ValueError: If job_id doesn't exist or a field name is invalid
        """

    @abstractmethod
    async def add(self, record: "JobRecord") -> None:
        """
        Add a job record to the queue.

        Raises:
            ValueError: If job_id already exists
        """

    @abstractmethod
    async def get(self, job_id: str) -> "JobRecord | None":
        """Get a job record by ID (None if not found)."""

    @abstractmethod
    async def list_all(self) -> "list[JobRecord]":
        """List all job records, newest first."""

    @abstractmethod
    async def requeue_stale_claims(self, older_than_seconds: float) -> int:
        """
        Return long-abandoned claimed jobs to the queue.

        Args:
            older_than_seconds: Minimum age of updated_at for a claim to count as stale

        Returns:
            Number of jobs requeued
        """

    async def initialize(self) -> None:
        """Prepare the backend (schema, connections). No-op by default."""

    async def close(self) -> None:
        """Release backend resources. No-op by default."""


def validate_fields(kwargs: dict) -> None:
    """Reject patches that touch fields outside UPDATABLE_FIELDS."""
    invalid = set(kwargs.keys()) - UPDATABLE_FIELDS
    if invalid:
        raise ValueError(f"Invalid field names: {invalid}")
