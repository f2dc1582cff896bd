# tests/unit/test_sqlite_store.py
"""
Unit tests for SQLiteJobQueue persistence.

Tests CRUD operations, FIFO claims, concurrent claim exclusivity and
stale-claim recovery.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio

from conftest import make_job
from poster_press.models.jobs import JobState, RenderMode
from poster_press.models.sqlite_store import SQLiteJobQueue


@pytest_asyncio.fixture
async def queue(tmp_path: Path) -> SQLiteJobQueue:
    """Create and initialize a test SQLite queue."""
    queue = SQLiteJobQueue(str(tmp_path / "jobs.db"))
    await queue.initialize()
    return queue


@pytest.mark.asyncio
async def test_add_and_get(queue: SQLiteJobQueue) -> None:
    """Round-trip a record through the database."""
    await queue.add(make_job("job-1", mode=RenderMode.PAID))

    fetched = await queue.get("job-1")
    assert fetched is not None
    assert fetched.project_id == "proj-1"
    assert fetched.template_id == "classic"
    assert fetched.mode == RenderMode.PAID
    assert fetched.state == JobState.QUEUED
    assert fetched.updated_at is not None
    assert fetched.output_paths == []


@pytest.mark.asyncio
async def test_get_missing_returns_none(queue: SQLiteJobQueue) -> None:
    assert await queue.get("nope") is None


@pytest.mark.asyncio
async def test_add_duplicate_raises(queue: SQLiteJobQueue) -> None:
    await queue.add(make_job("job-1"))
    with pytest.raises(ValueError, match="already exists"):
        await queue.add(make_job("job-1"))


@pytest.mark.asyncio
async def test_list_all_newest_first(queue: SQLiteJobQueue) -> None:
    await queue.add(make_job("old", age_seconds=60))
    await queue.add(make_job("new"))

    jobs = await queue.list_all()
    assert [j.job_id for j in jobs] == ["new", "old"]


@pytest.mark.asyncio
async def test_claim_is_fifo(queue: SQLiteJobQueue) -> None:
    """Oldest queued job is claimed first regardless of insertion order."""
    await queue.add(make_job("middle", age_seconds=20))
    await queue.add(make_job("newest", age_seconds=10))
    await queue.add(make_job("oldest", age_seconds=30))

    order = [(await queue.claim_next()).job_id for _ in range(3)]
    assert order == ["oldest", "middle", "newest"]
    assert await queue.claim_next() is None


@pytest.mark.asyncio
async def test_claim_marks_claimed_and_stamps(queue: SQLiteJobQueue) -> None:
    await queue.add(make_job("job-1", age_seconds=30))
    before = (await queue.get("job-1")).updated_at

    claimed = await queue.claim_next()
    assert claimed.state == JobState.CLAIMED
    assert claimed.updated_at >= before

    stored = await queue.get("job-1")
    assert stored.state == JobState.CLAIMED


@pytest.mark.asyncio
async def test_claim_skips_non_queued(queue: SQLiteJobQueue) -> None:
    await queue.add(make_job("done", state=JobState.SUCCEEDED, age_seconds=60))
    await queue.add(make_job("failed", state=JobState.FAILED, age_seconds=50))
    await queue.add(make_job("ready"))

    claimed = await queue.claim_next()
    assert claimed.job_id == "ready"
    assert await queue.claim_next() is None


@pytest.mark.asyncio
async def test_claim_empty_queue(queue: SQLiteJobQueue) -> None:
    assert await queue.claim_next() is None


@pytest.mark.asyncio
async def test_concurrent_claims_are_exclusive(queue: SQLiteJobQueue, tmp_path: Path) -> None:
    """Two queue instances on one file never hand out the same job."""
    for i in range(8):
        await queue.add(make_job(f"job-{i}", age_seconds=100 - i))

    other = SQLiteJobQueue(queue.db_path)
    results = await asyncio.gather(
        *(q.claim_next() for q in [queue, other] * 6)
    )

    claimed = [r.job_id for r in results if r is not None]
    assert len(claimed) == 8
    assert len(set(claimed)) == 8
    assert results.count(None) == 4


@pytest.mark.asyncio
async def test_update_terminal_success(queue: SQLiteJobQueue) -> None:
    await queue.add(make_job("job-1"))
    await queue.update(
        "job-1",
        state=JobState.SUCCEEDED,
        pdf_path="projects/proj-1/poster/final.pdf",
        zip_path="projects/proj-1/poster/poster_source.zip",
    )

    stored = await queue.get("job-1")
    assert stored.state == JobState.SUCCEEDED
    assert stored.output_paths == [
        "projects/proj-1/poster/final.pdf",
        "projects/proj-1/poster/poster_source.zip",
    ]


@pytest.mark.asyncio
async def test_update_failure_fields(queue: SQLiteJobQueue) -> None:
    await queue.add(make_job("job-1"))
    await queue.update(
        "job-1", state=JobState.FAILED, error_code="COMPILE_FAILED", error_detail="boom"
    )

    stored = await queue.get("job-1")
    assert stored.state == JobState.FAILED
    assert stored.error_code == "COMPILE_FAILED"
    assert stored.error_detail == "boom"


@pytest.mark.asyncio
async def test_update_missing_job_raises(queue: SQLiteJobQueue) -> None:
    with pytest.raises(ValueError, match="not found"):
        await queue.update("ghost", state=JobState.FAILED)


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields(queue: SQLiteJobQueue) -> None:
    await queue.add(make_job("job-1"))
    with pytest.raises(ValueError, match="Invalid field names"):
        await queue.update("job-1", project_id="other")


@pytest.mark.asyncio
async def test_requeue_stale_claims(queue: SQLiteJobQueue) -> None:
    """Claims older than the threshold go back to queued; fresh ones stay."""
    stale = make_job("stale", state=JobState.CLAIMED, age_seconds=7200)
    stale.updated_at = datetime.now(timezone.utc) - timedelta(hours=2)
    await queue.add(stale)

    fresh = make_job("fresh", state=JobState.CLAIMED)
    await queue.add(fresh)

    assert await queue.requeue_stale_claims(3600) == 1
    assert (await queue.get("stale")).state == JobState.QUEUED
    assert (await queue.get("fresh")).state == JobState.CLAIMED

    claimed = await queue.claim_next()
    assert claimed.job_id == "stale"


@pytest.mark.asyncio
async def test_data_survives_new_instance(queue: SQLiteJobQueue) -> None:
    await queue.add(make_job("job-1"))
    await queue.close()

    reopened = SQLiteJobQueue(queue.db_path)
    await reopened.initialize()
    assert (await reopened.get("job-1")) is not None
