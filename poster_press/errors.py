# poster_press/errors.py
"""
Error taxonomy for render jobs.

Every failure inside a pipeline run is converted into exactly one
PipelineError subclass; its ``code`` is what ends up in the job's
``error_code`` column.
"""

from enum import Enum

MAX_DETAIL_CHARS = 4000


class ErrorCode(Enum):
    """Classification codes stored on failed jobs."""

    TEMPLATE_NOT_FOUND = "TEMPLATE_NOT_FOUND"
    READ_INPUT_FAILED = "READ_INPUT_FAILED"
    RENDER_FAILED = "RENDER_FAILED"
    DOWNLOAD_FAILED = "DOWNLOAD_FAILED"
    COMPILE_FAILED = "COMPILE_FAILED"
    UPLOAD_FAILED = "UPLOAD_FAILED"
    STATUS_UPDATE_FAILED = "STATUS_UPDATE_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


def truncate_detail(text: str, limit: int = MAX_DETAIL_CHARS) -> str:
    """Bound diagnostic text before it is persisted."""
    if len(text) <= limit:
        return text
    return text[:limit]


class PipelineError(Exception):
    """Base class for classified pipeline failures."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class TemplateNotFoundError(PipelineError):
    code = ErrorCode.TEMPLATE_NOT_FOUND


class ReadInputError(PipelineError):
    code = ErrorCode.READ_INPUT_FAILED


class TemplateIntegrityError(PipelineError):
    """Template lacks a structural anchor the renderer needs."""

    code = ErrorCode.RENDER_FAILED


class DownloadError(PipelineError):
    code = ErrorCode.DOWNLOAD_FAILED


class CompileError(PipelineError):
    """External compiler failed; ``detail`` holds its bounded diagnostic."""

    code = ErrorCode.COMPILE_FAILED


class UploadError(PipelineError):
    code = ErrorCode.UPLOAD_FAILED


# Gateway-level exceptions (raised by queue/storage backends, classified by the pipeline)


class StorageError(Exception):
    """Object storage operation failed."""


class ObjectNotFoundError(StorageError):
    """Requested object key does not exist."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Object not found: {key}")
        self.key = key


class QueueError(Exception):
    """Job queue operation failed."""
