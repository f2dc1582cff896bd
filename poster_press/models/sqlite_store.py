# poster_press/models/sqlite_store.py
"""
SQLite-backed job queue.

Provides async CRUD operations with WAL mode and IMMEDIATE transactions.
Several worker processes may share one database file: IMMEDIATE
transactions take SQLite's write lock up front, which serializes claims.
"""

import logging
from datetime import datetime, timedelta, timezone

import aiosqlite

from poster_press.models.jobs import JobRecord, JobState, RenderMode
from poster_press.models.schema import init_db
from poster_press.models.store import JobQueue, validate_fields

logger = logging.getLogger(__name__)

# Seconds a connection waits for the write lock before raising "database is locked"
LOCK_TIMEOUT = 30.0


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteJobQueue(JobQueue):
    """
    Async SQLite-backed job queue.

    Features:
        - WAL mode for concurrent reads/writes
        - IMMEDIATE transactions for atomic claims
        - Stale-claim requeue on startup
        - No persistent connections (avoids resource leaks)
    """

    def __init__(self, db_path: str) -> None:
        """
        Initialize SQLite job queue.

        Args:
            db_path: Path to SQLite database file
        """
        self._db_path = db_path
        logger.info(f"Created SQLiteJobQueue with path: {db_path}")

    @property
    def db_path(self) -> str:
        return self._db_path

    def _connect(self):
        return aiosqlite.connect(self._db_path, timeout=LOCK_TIMEOUT)

    async def initialize(self) -> None:
        """Initialize database schema."""
        await init_db(self._db_path)

    async def add(self, record: JobRecord) -> None:
        async with self._connect() as db:
            await db.execute("BEGIN IMMEDIATE")

            try:
                cursor = await db.execute(
                    "SELECT id FROM render_jobs WHERE id = ?", (record.job_id,)
                )
                if await cursor.fetchone():
                    raise ValueError(f"Job {record.job_id} already exists")

                updated_at_iso = (
                    record.updated_at.isoformat() if record.updated_at else _now_iso()
                )

                await db.execute(
                    """
                    INSERT INTO render_jobs (
                        id, project_id, template_id, mode, state,
                        error_code, error_detail, pdf_path, zip_path,
                        created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.job_id,
                        record.project_id,
                        record.template_id,
                        record.mode.value,
                        record.state.value,
                        record.error_code,
                        record.error_detail,
                        record.pdf_path,
                        record.zip_path,
                        record.created_at.isoformat(),
                        updated_at_iso,
                    ),
                )

                await db.commit()
                logger.info(f"Added job {record.job_id} to SQLite queue")

            except Exception:
                await db.rollback()
                raise

    async def get(self, job_id: str) -> JobRecord | None:
        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM render_jobs WHERE id = ?", (job_id,))
            row = await cursor.fetchone()

            if not row:
                return None

            return self._row_to_record(row)

    async def list_all(self) -> list[JobRecord]:
        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM render_jobs ORDER BY created_at DESC")
            rows = await cursor.fetchall()

            return [self._row_to_record(row) for row in rows]

    async def update(self, job_id: str, **kwargs) -> None:
        validate_fields(kwargs)

        async with self._connect() as db:
            await db.execute("BEGIN IMMEDIATE")

            try:
                cursor = await db.execute("SELECT id FROM render_jobs WHERE id = ?", (job_id,))
                if not await cursor.fetchone():
                    raise ValueError(f"Job {job_id} not found")

                set_parts = []
                values = []

                for key, value in kwargs.items():
                    if key == "state" and isinstance(value, JobState):
                        value = value.value

                    set_parts.append(f"{key} = ?")
                    values.append(value)

                set_parts.append("updated_at = ?")
                values.append(_now_iso())
                values.append(job_id)

                sql = f"UPDATE render_jobs SET {', '.join(set_parts)} WHERE id = ?"
                await db.execute(sql, values)

                await db.commit()
                logger.info(f"Updated job {job_id}: {list(kwargs.keys())}")

            except Exception:
                await db.rollback()
                raise

    async def claim_next(self) -> JobRecord | None:
        """
        Atomically claim the oldest queued job (FIFO).

        The select and the conditional update run in one IMMEDIATE
        transaction, so no other connection can claim the same row.
        """
        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            await db.execute("BEGIN IMMEDIATE")

            try:
                cursor = await db.execute(
                    "SELECT id FROM render_jobs WHERE state = ? "
                    "ORDER BY created_at ASC LIMIT 1",
                    (JobState.QUEUED.value,),
                )
                row = await cursor.fetchone()
                if not row:
                    await db.rollback()
                    return None

                job_id = row["id"]
                cursor = await db.execute(
                    "UPDATE render_jobs SET state = ?, updated_at = ? "
                    "WHERE id = ? AND state = ?",
                    (JobState.CLAIMED.value, _now_iso(), job_id, JobState.QUEUED.value),
                )
                if cursor.rowcount != 1:
                    await db.rollback()
                    return None

                cursor = await db.execute("SELECT * FROM render_jobs WHERE id = ?", (job_id,))
                claimed = await cursor.fetchone()
                await db.commit()

            except Exception:
                await db.rollback()
                raise

        logger.info(f"Claimed job {job_id}")
        return self._row_to_record(claimed)

    async def requeue_stale_claims(self, older_than_seconds: float) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=older_than_seconds)

        async with self._connect() as db:
            await db.execute("BEGIN IMMEDIATE")
            cursor = await db.execute(
                "UPDATE render_jobs SET state = ?, updated_at = ? "
                "WHERE state = ? AND updated_at <= ?",
                (
                    JobState.QUEUED.value,
                    _now_iso(),
                    JobState.CLAIMED.value,
                    cutoff.isoformat(),
                ),
            )
            requeued = cursor.rowcount
            await db.commit()

        if requeued > 0:
            logger.warning(f"Requeued {requeued} stale claimed job(s)")
        return requeued

    async def close(self) -> None:
        """
        Checkpoint WAL.

        Truncates WAL file to avoid unbounded growth.
        """
        try:
            async with self._connect() as db:
                await db.execute("PRAGMA wal_checkpoint(TRUNCATE)")
                logger.info("WAL checkpoint completed")
        except Exception as e:
            logger.warning(f"WAL checkpoint failed: {e}")

    def _row_to_record(self, row: aiosqlite.Row) -> JobRecord:
        return JobRecord(
            job_id=row["id"],
            project_id=row["project_id"],
            template_id=row["template_id"],
            mode=RenderMode(row["mode"]),
            state=JobState(row["state"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"])
            if row["updated_at"]
            else None,
            error_code=row["error_code"],
            error_detail=row["error_detail"],
            pdf_path=row["pdf_path"],
            zip_path=row["zip_path"],
        )
