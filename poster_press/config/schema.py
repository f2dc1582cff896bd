# poster_press/config/schema.py
"""
Pydantic configuration models for poster-press.

All models use extra="ignore" to allow unknown YAML keys without crashing.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class WorkerConfig(BaseModel):
    """Worker loop and working directory configuration."""

    model_config = ConfigDict(extra="ignore")

    poll_interval: float = Field(
        default=2.0, gt=0.0, description="Seconds to sleep when the queue is empty"
    )
    work_root: str | None = Field(
        default=None,
        description="Parent directory for per-job working dirs (None = system temp)",
    )
    keep_workdir: bool = Field(
        default=False, description="Keep working dirs after a run (debugging only)"
    )
    stale_claim_seconds: int = Field(
        default=3600,
        ge=0,
        description="Claimed jobs untouched for this long are requeued at startup (0 disables)",
    )


class CompilerConfig(BaseModel):
    """External TeX engine configuration."""

    model_config = ConfigDict(extra="ignore")

    binary: str = Field(default="tectonic", description="Compiler executable")
    timeout: float = Field(
        default=300.0, gt=0.0, description="Seconds before the compiler process is killed"
    )
    max_diagnostic_chars: int = Field(
        default=4000, ge=1, description="Maximum diagnostic length kept on failure"
    )
    extra_args: list[str] = Field(
        default_factory=list, description="Additional arguments passed to the compiler"
    )


class QueueConfig(BaseModel):
    """Job queue backend configuration."""

    model_config = ConfigDict(extra="ignore")

    backend: Literal["sqlite", "rest"] = Field(
        default="sqlite", description="Job queue backend"
    )
    db_path: str | None = Field(
        default=None, description="SQLite database path (None = user data dir)"
    )
    claim_rpc: str = Field(
        default="claim_render_job", description="Remote procedure that atomically claims a job"
    )
    jobs_table: str = Field(default="render_jobs", description="Remote jobs table")


class StorageConfig(BaseModel):
    """Object storage backend configuration."""

    model_config = ConfigDict(extra="ignore")

    backend: Literal["local", "rest"] = Field(
        default="local", description="Object storage backend"
    )
    root: str | None = Field(
        default=None, description="Root directory for local storage (None = user data dir)"
    )


class TemplatesConfig(BaseModel):
    """Template source configuration."""

    model_config = ConfigDict(extra="ignore")

    backend: Literal["local", "rest"] = Field(
        default="local", description="Template source backend"
    )
    directory: str | None = Field(
        default=None, description="Directory of <template_id>.tex files for local templates"
    )
    table: str = Field(default="templates", description="Remote templates table")
    column: str = Field(
        default="beamer_tex_template", description="Column holding the template source"
    )


class RestConfig(BaseModel):
    """Connection settings shared by the REST queue, storage and template backends."""

    model_config = ConfigDict(extra="ignore")

    base_url: str | None = Field(default=None, description="Backend base URL")
    service_key: str | None = Field(
        default=None, description="Service key sent as bearer token and apikey header"
    )
    timeout: float = Field(default=30.0, gt=0.0, description="Request timeout in seconds")


class LoggingConfig(BaseModel):
    """Logging output configuration."""

    model_config = ConfigDict(extra="ignore")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Root log level"
    )
    json_output: bool = Field(default=False, description="Emit JSON lines instead of text")


class PosterPressConfig(BaseModel):
    """Root configuration for poster-press."""

    model_config = ConfigDict(extra="ignore")

    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    compiler: CompilerConfig = Field(default_factory=CompilerConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    templates: TemplatesConfig = Field(default_factory=TemplatesConfig)
    rest: RestConfig = Field(default_factory=RestConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
