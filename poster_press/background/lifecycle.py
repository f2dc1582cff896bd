# poster_press/background/lifecycle.py
"""
Worker lifecycle management.

Coordinates startup (backend initialization + stale-claim recovery +
worker) and shutdown.
"""

import asyncio
import logging
from pathlib import Path

from poster_press.background.signals import setup_signal_handlers
from poster_press.background.worker import BackgroundWorker
from poster_press.compiler.tectonic import TectonicCompiler
from poster_press.config.schema import PosterPressConfig
from poster_press.gateways.factory import Gateways, create_gateways
from poster_press.pipeline.orchestrator import RenderPipeline

logger = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """The worker cannot start; the process should exit non-zero."""


class WorkerLifecycle:
    """
    Worker lifecycle coordinator.

    Manages:
        - Compiler availability check
        - Queue initialization and stale-claim requeue on startup
        - Background worker lifecycle
        - Signal handler registration
        - Graceful shutdown
    """

    def __init__(
        self,
        config: PosterPressConfig,
        data_dir: Path,
        gateways: Gateways | None = None,
        compiler: TectonicCompiler | None = None,
    ) -> None:
        """
        Initialize worker lifecycle manager.

        Args:
            config: Root configuration
            data_dir: Default home for local backends
            gateways: Pre-built gateways (default: created from config)
            compiler: Pre-built compiler (default: created from config)

        Raises:
            StartupError: If the configured backends cannot be constructed
        """
        self._config = config
        try:
            self._gateways = gateways or create_gateways(config, data_dir)
        except ValueError as e:
            raise StartupError(str(e)) from e
        self._compiler = compiler or TectonicCompiler.from_config(config.compiler)

        self._pipeline = RenderPipeline(
            queue=self._gateways.queue,
            storage=self._gateways.storage,
            templates=self._gateways.templates,
            compiler=self._compiler,
            work_root=config.worker.work_root,
            keep_workdir=config.worker.keep_workdir,
            max_detail_chars=config.compiler.max_diagnostic_chars,
        )
        self._worker = BackgroundWorker(
            self._gateways.queue,
            self._pipeline,
            poll_interval=config.worker.poll_interval,
        )
        logger.info("Created WorkerLifecycle")

    @property
    def gateways(self) -> Gateways:
        return self._gateways

    @property
    def worker(self) -> BackgroundWorker:
        """Get the background worker (for inspection/testing)."""
        return self._worker

    @property
    def pipeline(self) -> RenderPipeline:
        return self._pipeline

    async def prepare(self) -> None:
        """
        Check prerequisites and initialize backends without starting the loop.

        Steps:
            1. Verify the compiler executable exists
            2. Initialize the queue backend
            3. Requeue stale claims left by a crashed or unreported run

        Raises:
            StartupError: On any failure
        """
        if not self._compiler.is_available():
            raise StartupError(f"Compiler executable not found: {self._compiler.binary}")

        try:
            await self._gateways.queue.initialize()
        except Exception as e:
            raise StartupError(f"Queue initialization failed: {e}") from e

        stale_after = self._config.worker.stale_claim_seconds
        if stale_after > 0:
            try:
                await self._gateways.queue.requeue_stale_claims(stale_after)
            except Exception as e:
                raise StartupError(f"Stale claim recovery failed: {e}") from e

    async def startup(self) -> None:
        """Prepare backends and start the background worker."""
        logger.info("Starting worker lifecycle...")
        await self.prepare()
        await self._worker.start()
        logger.info("Worker lifecycle started")

    async def shutdown(self) -> None:
        """
        Shut down gracefully.

        Steps:
            1. Stop background worker (running job is reported failed)
            2. Close backends
        """
        logger.info("Shutting down worker lifecycle...")
        if self._worker.running:
            await self._worker.stop()
        await self._gateways.close()
        logger.info("Worker lifecycle shutdown complete")

    async def run_forever(self) -> None:
        """Start, block until SIGINT/SIGTERM, then shut down."""
        shutdown_event = asyncio.Event()
        try:
            await self.startup()
            setup_signal_handlers(shutdown_event)
            await shutdown_event.wait()
        finally:
            await self.shutdown()
