# poster_press/pipeline/orchestrator.py
"""
Render pipeline orchestrator.

Runs one claimed job through its stages in order and reports the terminal
status. Any stage failure skips every remaining stage; nothing is retried
within a run.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from poster_press.compiler.tectonic import TectonicCompiler
from poster_press.errors import (
    DownloadError,
    ErrorCode,
    ObjectNotFoundError,
    PipelineError,
    ReadInputError,
    StorageError,
    TemplateNotFoundError,
    UploadError,
    truncate_detail,
)
from poster_press.gateways.storage import ObjectStore
from poster_press.gateways.templates import TemplateSource
from poster_press.models.jobs import JobRecord, JobState, Template
from poster_press.models.store import JobQueue
from poster_press.paths import ARCHIVE_NAME, archive_key, bundle_key, figure_key, pdf_key
from poster_press.pipeline.packaging import build_source_archive
from poster_press.pipeline.workdir import WorkingDirectory
from poster_press.rendering.renderer import RenderedDocument, render_document
from poster_press.schemas.bundle import InputBundle

logger = logging.getLogger(__name__)

# Stage names, in execution order
FETCH_INPUTS = "fetch_inputs"
RENDER = "render"
STAGE_ASSETS = "stage_assets"
COMPILE = "compile"
PUBLISH_ARTIFACT = "publish_artifact"
PACKAGE_SOURCES = "package_sources"

STAGES = (FETCH_INPUTS, RENDER, STAGE_ASSETS, COMPILE, PUBLISH_ARTIFACT, PACKAGE_SOURCES)


@dataclass
class PipelineResult:
    """
    Outcome of one pipeline run.

    Attributes:
        success: Whether every stage completed
        pdf_path: Published PDF key (success only)
        zip_path: Published source archive key (paid success only)
        error_code: ErrorCode value (failure only)
        error_detail: Bounded diagnostic (failure only)
        failed_stage: Name of the failing stage (failure only)
        completed_stages: Stages that finished, in order
        reported: Whether the terminal status update reached the queue
    """

    success: bool
    pdf_path: str | None = None
    zip_path: str | None = None
    error_code: str | None = None
    error_detail: str | None = None
    failed_stage: str | None = None
    completed_stages: list[str] = field(default_factory=list)
    reported: bool = False


class RenderPipeline:
    """
    Render pipeline for one job at a time.

    Workflow:
    1. fetch_inputs: input bundle + template
    2. render: fill the template
    3. stage_assets: working dir, main.tex, figure downloads
    4. compile: external TeX engine
    5. publish_artifact: upload the PDF
    6. package_sources: zip + upload sources (paid mode only)
    7. report: terminal status on the job
    """

    def __init__(
        self,
        queue: JobQueue,
        storage: ObjectStore,
        templates: TemplateSource,
        compiler: TectonicCompiler,
        work_root: str | Path | None = None,
        keep_workdir: bool = False,
        max_detail_chars: int = 4000,
    ) -> None:
        """
        Initialize render pipeline.

        Args:
            queue: Job queue receiving terminal status updates
            storage: Object store for inputs and artifacts
            templates: Template lookup
            compiler: Compiler exposing ``async compile(source_path, output_dir)``
            work_root: Parent of per-run working dirs (None = system temp)
            keep_workdir: Leave working dirs in place after the run
            max_detail_chars: Bound on persisted error text
        """
        self._queue = queue
        self._storage = storage
        self._templates = templates
        self._compiler = compiler
        self._work_root = work_root
        self._keep_workdir = keep_workdir
        self._max_detail_chars = max_detail_chars

    async def run(self, job: JobRecord) -> PipelineResult:
        """
        Process a claimed job to a terminal state.

        Never raises for job-level failures: they are classified, reported
        on the job and returned in the PipelineResult. Cancellation
        propagates to the caller.
        """
        result = PipelineResult(success=False)
        stage = FETCH_INPUTS
        workdir: WorkingDirectory | None = None
        start = time.monotonic()
        logger.info(
            f"Running job {job.job_id} (project={job.project_id}, "
            f"template={job.template_id}, mode={job.mode.value})",
            extra={"job_id": job.job_id},
        )

        try:
            bundle, template = await self._fetch_inputs(job)
            result.completed_stages.append(stage)

            stage = RENDER
            rendered = render_document(template.source, bundle, job.mode)
            result.completed_stages.append(stage)

            stage = STAGE_ASSETS
            workdir = WorkingDirectory.create(self._work_root, job.job_id)
            await self._stage_assets(job, rendered, workdir)
            result.completed_stages.append(stage)

            stage = COMPILE
            compiled = await self._compiler.compile(workdir.source_path, workdir.out_dir)
            result.completed_stages.append(stage)

            stage = PUBLISH_ARTIFACT
            pdf = pdf_key(job.project_id, job.mode)
            await self._upload(pdf, compiled.pdf_path, "application/pdf")
            result.completed_stages.append(stage)

            zip_path = None
            if job.mode.includes_sources:
                stage = PACKAGE_SOURCES
                archive = build_source_archive(
                    workdir.source_path, workdir.assets_dir, workdir.root / ARCHIVE_NAME
                )
                zip_path = archive_key(job.project_id)
                await self._upload(zip_path, archive, "application/zip")
                result.completed_stages.append(stage)

            result.success = True
            result.pdf_path = pdf
            result.zip_path = zip_path

        except PipelineError as e:
            self._record_failure(result, stage, e.code, e.detail)
        except Exception as e:
            logger.exception(f"Unexpected error in stage {stage} for job {job.job_id}")
            self._record_failure(
                result, stage, ErrorCode.INTERNAL_ERROR, f"{type(e).__name__}: {e}"
            )
        finally:
            if workdir is not None and not self._keep_workdir:
                workdir.cleanup()

        duration = time.monotonic() - start
        if result.success:
            logger.info(
                f"Job {job.job_id} succeeded in {duration:.1f}s: {result.pdf_path}",
                extra={"job_id": job.job_id},
            )
            result.reported = await self._report(
                job.job_id,
                state=JobState.SUCCEEDED,
                pdf_path=result.pdf_path,
                zip_path=result.zip_path,
                error_code=None,
                error_detail=None,
            )
        else:
            logger.error(
                f"Job {job.job_id} failed at {result.failed_stage} "
                f"({result.error_code}) after {duration:.1f}s",
                extra={"job_id": job.job_id},
            )
            result.reported = await self._report(
                job.job_id,
                state=JobState.FAILED,
                error_code=result.error_code,
                error_detail=result.error_detail,
            )
        return result

    async def report_failure(self, job_id: str, code: ErrorCode, detail: str) -> bool:
        """Mark a job failed outside a normal run (e.g. worker shutdown)."""
        return await self._report(
            job_id,
            state=JobState.FAILED,
            error_code=code.value,
            error_detail=truncate_detail(detail, self._max_detail_chars),
        )

    def _record_failure(
        self, result: PipelineResult, stage: str, code: ErrorCode, detail: str
    ) -> None:
        result.success = False
        result.failed_stage = stage
        result.error_code = code.value
        result.error_detail = truncate_detail(detail, self._max_detail_chars)

    async def _report(self, job_id: str, **patch) -> bool:
        """
        Write the terminal status.

        A failed update is logged and swallowed: the job stays claimed and is
        picked up again by the stale-claim requeue on a later startup.
        """
        try:
            await self._queue.update(job_id, **patch)
            return True
        except Exception as e:
            logger.error(
                f"{ErrorCode.STATUS_UPDATE_FAILED.value}: could not record "
                f"{patch['state'].value} for job {job_id}: {e}",
                extra={"job_id": job_id},
            )
            return False

    async def _fetch_inputs(self, job: JobRecord) -> tuple[InputBundle, Template]:
        key = bundle_key(job.project_id)
        try:
            raw = await self._storage.get(key)
            bundle = InputBundle.model_validate(json.loads(raw))
        except ObjectNotFoundError as e:
            raise ReadInputError(f"Input bundle not found: {key}") from e
        except StorageError as e:
            raise ReadInputError(f"Failed to read input bundle {key}: {e}") from e
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ReadInputError(f"Input bundle {key} is not valid JSON: {e}") from e
        except ValidationError as e:
            raise ReadInputError(f"Input bundle {key} failed validation: {e}") from e

        try:
            template = await self._templates.get(job.template_id)
        except StorageError as e:
            raise ReadInputError(f"Failed to read template {job.template_id}: {e}") from e
        if template is None:
            raise TemplateNotFoundError(f"Template not found: {job.template_id}")

        return bundle, template

    async def _stage_assets(
        self, job: JobRecord, rendered: RenderedDocument, workdir: WorkingDirectory
    ) -> None:
        workdir.source_path.write_text(rendered.source, encoding="utf-8")

        for figure in rendered.figures:
            key = figure_key(job.project_id, figure.storage_name)
            try:
                data = await self._storage.get(key)
            except StorageError as e:
                raise DownloadError(f"Failed to download figure {key}: {e}") from e
            (workdir.assets_dir / figure.asset_name).write_bytes(data)
            logger.debug(f"Staged {key} as assets/{figure.asset_name}")

    async def _upload(self, key: str, path: Path, content_type: str) -> None:
        try:
            await self._storage.put(key, path.read_bytes(), content_type)
        except StorageError as e:
            raise UploadError(f"Failed to upload {key}: {e}") from e
