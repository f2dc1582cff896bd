# poster_press/background/worker.py
"""
Background worker for sequential job processing.

Claims jobs from the queue, runs them one at a time through the render
pipeline, and handles graceful shutdown.
"""

import asyncio
import logging
import traceback

from poster_press.errors import ErrorCode
from poster_press.models.store import JobQueue
from poster_press.pipeline.orchestrator import PipelineResult, RenderPipeline

logger = logging.getLogger(__name__)


class BackgroundWorker:
    """
    Sequential background job processor.

    Features:
        - Claims the next queued job (FIFO, atomic)
        - Processes jobs one at a time, each to a terminal state
        - Sleeps poll_interval when the queue is empty
        - Reports a running job as failed on shutdown (via CancelledError)
        - Survives any exception from a single job or a failed claim
    """

    def __init__(
        self,
        queue: JobQueue,
        pipeline: RenderPipeline,
        poll_interval: float = 2.0,
    ) -> None:
        """
        Initialize background worker.

        Args:
            queue: Job queue to claim from
            pipeline: Render pipeline that processes and reports each job
            poll_interval: Seconds between claim attempts when idle (default: 2.0)
        """
        self._queue = queue
        self._pipeline = pipeline
        self._poll_interval = poll_interval
        self._current_job_id: str | None = None
        self._task: asyncio.Task | None = None
        self._processed = 0

        logger.info(f"Initialized BackgroundWorker (poll_interval={poll_interval}s)")

    @property
    def current_job_id(self) -> str | None:
        """Get the currently processing job ID (None if idle)."""
        return self._current_job_id

    @property
    def processed(self) -> int:
        """Number of jobs taken to a terminal state since start."""
        return self._processed

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """
        Start the background worker loop.

        Creates an asyncio task that claims queued jobs.
        """
        if self._task is not None:
            logger.warning("Worker already started")
            return

        self._task = asyncio.create_task(self._run_loop())
        logger.info("Background worker started")

    async def stop(self) -> None:
        """
        Stop the background worker gracefully.

        Cancels the worker task and waits for it to finish.
        If a job is running, it is reported as failed.
        """
        if self._task is None:
            logger.warning("Worker not running")
            return

        logger.info("Stopping background worker...")
        self._task.cancel()

        try:
            await self._task
        except asyncio.CancelledError:
            logger.info("Worker task cancelled")

        self._task = None
        logger.info("Background worker stopped")

    async def wait(self) -> None:
        """Block until the worker loop exits (normally only via stop())."""
        if self._task is None:
            return
        try:
            await asyncio.shield(self._task)
        except asyncio.CancelledError:
            pass

    async def run_once(self) -> PipelineResult | None:
        """
        Claim and process at most one job.

        Returns:
            The PipelineResult, or None if nothing was claimed
        """
        try:
            job = await self._queue.claim_next()
        except Exception as e:
            logger.error(f"Claim failed: {type(e).__name__}: {e}")
            return None

        if job is None:
            return None

        self._current_job_id = job.job_id
        logger.info(f"Picked up job {job.job_id} for processing", extra={"job_id": job.job_id})

        try:
            result = await self._pipeline.run(job)

        except asyncio.CancelledError:
            logger.warning(f"Job {job.job_id} interrupted by shutdown")
            await self._pipeline.report_failure(
                job.job_id,
                ErrorCode.INTERNAL_ERROR,
                "Worker shutdown during processing",
            )
            raise

        except Exception as e:
            # RenderPipeline.run classifies its own failures; this is the last line
            error_msg = f"{type(e).__name__}: {str(e)}"
            tb_lines = traceback.format_exception(type(e), e, e.__traceback__)
            tb_snippet = "".join(tb_lines[-3:])
            logger.error(f"Job {job.job_id} crashed the pipeline: {error_msg}")
            await self._pipeline.report_failure(
                job.job_id, ErrorCode.INTERNAL_ERROR, f"{error_msg}\n\n{tb_snippet}"
            )
            result = PipelineResult(
                success=False,
                error_code=ErrorCode.INTERNAL_ERROR.value,
                error_detail=error_msg,
            )

        finally:
            self._current_job_id = None

        self._processed += 1
        return result

    async def _run_loop(self) -> None:
        """
        Main worker loop: claim, process, repeat; sleep when idle.

        Handles CancelledError for graceful shutdown.
        """
        logger.info("Worker loop started")

        try:
            while True:
                result = await self.run_once()
                if result is None:
                    await asyncio.sleep(self._poll_interval)

        except asyncio.CancelledError:
            logger.info("Worker loop cancelled")
            raise
