# tests/unit/test_worker.py
"""
Tests for BackgroundWorker and WorkerLifecycle.

Covers single claims, the polling loop, shutdown while a job is running,
and startup checks.
"""

import asyncio
from pathlib import Path

import pytest

from conftest import FakeCompiler, make_job
from poster_press.background.lifecycle import StartupError, WorkerLifecycle
from poster_press.background.worker import BackgroundWorker
from poster_press.config.schema import PosterPressConfig, WorkerConfig
from poster_press.errors import ErrorCode
from poster_press.gateways.factory import Gateways
from poster_press.models.jobs import InMemoryJobQueue, JobState
from poster_press.pipeline.orchestrator import RenderPipeline


class BlockingCompiler(FakeCompiler):
    """Compiler that never finishes until cancelled."""

    def __init__(self) -> None:
        super().__init__()
        self.started = asyncio.Event()

    async def compile(self, source_path, output_dir):
        self.started.set()
        await asyncio.Event().wait()


class UnavailableCompiler(FakeCompiler):
    binary = "tectonic-missing"

    def is_available(self) -> bool:
        return False


class BrokenClaimQueue(InMemoryJobQueue):
    async def claim_next(self):
        raise ConnectionError("database is locked")


class CrashingPipeline:
    """Pipeline stand-in whose run() escapes with an unexpected error."""

    def __init__(self, inner: RenderPipeline) -> None:
        self._inner = inner

    async def run(self, job):
        raise RuntimeError("pipeline bug")

    async def report_failure(self, job_id, code, detail):
        return await self._inner.report_failure(job_id, code, detail)


def _pipeline(queue, storage, templates, compiler, tmp_path: Path) -> RenderPipeline:
    return RenderPipeline(
        queue=queue,
        storage=storage,
        templates=templates,
        compiler=compiler,
        work_root=tmp_path / "work",
    )


async def _wait_for(predicate, timeout: float = 5.0) -> None:
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout=timeout)


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_empty_queue(self, storage, templates, fake_compiler, tmp_path):
        queue = InMemoryJobQueue()
        worker = BackgroundWorker(queue, _pipeline(queue, storage, templates, fake_compiler, tmp_path))

        assert await worker.run_once() is None
        assert worker.processed == 0

    @pytest.mark.asyncio
    async def test_processes_one_job(self, storage, templates, fake_compiler, tmp_path):
        queue = InMemoryJobQueue()
        await queue.add(make_job("job-1", age_seconds=10))
        await queue.add(make_job("job-2"))
        worker = BackgroundWorker(queue, _pipeline(queue, storage, templates, fake_compiler, tmp_path))

        result = await worker.run_once()

        assert result.success
        assert worker.processed == 1
        assert worker.current_job_id is None
        assert (await queue.get("job-1")).state == JobState.SUCCEEDED
        assert (await queue.get("job-2")).state == JobState.QUEUED

    @pytest.mark.asyncio
    async def test_claim_error_survived(self, storage, templates, fake_compiler, tmp_path):
        queue = BrokenClaimQueue()
        worker = BackgroundWorker(queue, _pipeline(queue, storage, templates, fake_compiler, tmp_path))

        assert await worker.run_once() is None

    @pytest.mark.asyncio
    async def test_pipeline_crash_reported(self, storage, templates, fake_compiler, tmp_path):
        queue = InMemoryJobQueue()
        await queue.add(make_job("job-1"))
        inner = _pipeline(queue, storage, templates, fake_compiler, tmp_path)
        worker = BackgroundWorker(queue, CrashingPipeline(inner))

        result = await worker.run_once()

        assert not result.success
        assert result.error_code == ErrorCode.INTERNAL_ERROR.value
        stored = await queue.get("job-1")
        assert stored.state == JobState.FAILED
        assert "RuntimeError: pipeline bug" in stored.error_detail


class TestLoop:
    @pytest.mark.asyncio
    async def test_drains_queue(self, storage, templates, fake_compiler, tmp_path):
        queue = InMemoryJobQueue()
        for i in range(3):
            await queue.add(make_job(f"job-{i}", age_seconds=10 - i))
        worker = BackgroundWorker(
            queue, _pipeline(queue, storage, templates, fake_compiler, tmp_path), poll_interval=0.01
        )

        await worker.start()
        assert worker.running
        await _wait_for(lambda: worker.processed == 3)
        await worker.stop()

        assert not worker.running
        states = [(await queue.get(f"job-{i}")).state for i in range(3)]
        assert states == [JobState.SUCCEEDED] * 3

    @pytest.mark.asyncio
    async def test_picks_up_jobs_added_later(self, storage, templates, fake_compiler, tmp_path):
        queue = InMemoryJobQueue()
        worker = BackgroundWorker(
            queue, _pipeline(queue, storage, templates, fake_compiler, tmp_path), poll_interval=0.01
        )

        await worker.start()
        await asyncio.sleep(0.05)
        await queue.add(make_job("late"))
        await _wait_for(lambda: worker.processed == 1)
        await worker.stop()

        assert (await queue.get("late")).state == JobState.SUCCEEDED

    @pytest.mark.asyncio
    async def test_stop_during_job_reports_failure(self, storage, templates, tmp_path):
        queue = InMemoryJobQueue()
        await queue.add(make_job("job-1"))
        compiler = BlockingCompiler()
        worker = BackgroundWorker(
            queue, _pipeline(queue, storage, templates, compiler, tmp_path), poll_interval=0.01
        )

        await worker.start()
        await asyncio.wait_for(compiler.started.wait(), timeout=5.0)
        assert worker.current_job_id == "job-1"

        await worker.stop()

        stored = await queue.get("job-1")
        assert stored.state == JobState.FAILED
        assert stored.error_code == ErrorCode.INTERNAL_ERROR.value
        assert stored.error_detail == "Worker shutdown during processing"
        assert list((tmp_path / "work").iterdir()) == []

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self, storage, templates, fake_compiler, tmp_path):
        queue = InMemoryJobQueue()
        worker = BackgroundWorker(
            queue, _pipeline(queue, storage, templates, fake_compiler, tmp_path), poll_interval=0.01
        )

        await worker.start()
        task = worker._task
        await worker.start()
        assert worker._task is task
        await worker.stop()


class TestLifecycle:
    def _config(self, tmp_path: Path, **worker) -> PosterPressConfig:
        return PosterPressConfig(
            worker=WorkerConfig(poll_interval=0.01, work_root=str(tmp_path / "work"), **worker)
        )

    @pytest.mark.asyncio
    async def test_missing_compiler_blocks_startup(self, storage, templates, tmp_path):
        gateways = Gateways(InMemoryJobQueue(), storage, templates)
        lifecycle = WorkerLifecycle(
            self._config(tmp_path), tmp_path, gateways=gateways, compiler=UnavailableCompiler()
        )

        with pytest.raises(StartupError, match="tectonic-missing"):
            await lifecycle.startup()

    @pytest.mark.asyncio
    async def test_failed_startup_closes_gateways(self, storage, templates, tmp_path):
        closed = []

        class ClosingQueue(InMemoryJobQueue):
            async def close(self) -> None:
                closed.append(True)

        gateways = Gateways(ClosingQueue(), storage, templates)
        lifecycle = WorkerLifecycle(
            self._config(tmp_path), tmp_path, gateways=gateways, compiler=UnavailableCompiler()
        )

        with pytest.raises(StartupError):
            await lifecycle.run_forever()
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_prepare_requeues_stale_claims(self, storage, templates, fake_compiler, tmp_path):
        queue = InMemoryJobQueue()
        stale = make_job("stale", state=JobState.CLAIMED, age_seconds=7200)
        stale.updated_at = stale.created_at
        await queue.add(stale)

        lifecycle = WorkerLifecycle(
            self._config(tmp_path),
            tmp_path,
            gateways=Gateways(queue, storage, templates),
            compiler=fake_compiler,
        )
        await lifecycle.prepare()

        assert (await queue.get("stale")).state == JobState.QUEUED

    @pytest.mark.asyncio
    async def test_requeue_disabled(self, storage, templates, fake_compiler, tmp_path):
        queue = InMemoryJobQueue()
        stale = make_job("stale", state=JobState.CLAIMED, age_seconds=7200)
        stale.updated_at = stale.created_at
        await queue.add(stale)

        lifecycle = WorkerLifecycle(
            self._config(tmp_path, stale_claim_seconds=0),
            tmp_path,
            gateways=Gateways(queue, storage, templates),
            compiler=fake_compiler,
        )
        await lifecycle.prepare()

        assert (await queue.get("stale")).state == JobState.CLAIMED

    @pytest.mark.asyncio
    async def test_startup_and_shutdown(self, storage, templates, fake_compiler, tmp_path):
        queue = InMemoryJobQueue()
        await queue.add(make_job("job-1"))
        lifecycle = WorkerLifecycle(
            self._config(tmp_path),
            tmp_path,
            gateways=Gateways(queue, storage, templates),
            compiler=fake_compiler,
        )

        await lifecycle.startup()
        await _wait_for(lambda: lifecycle.worker.processed == 1)
        await lifecycle.shutdown()

        assert not lifecycle.worker.running
        assert (await queue.get("job-1")).state == JobState.SUCCEEDED

    def test_rest_backend_without_credentials(self, tmp_path):
        config = PosterPressConfig.model_validate({"queue": {"backend": "rest"}})
        with pytest.raises(StartupError):
            WorkerLifecycle(config, tmp_path, compiler=FakeCompiler())
