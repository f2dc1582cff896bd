"""Configuration system for poster-press."""

from .loader import get_config_path, get_data_dir, load_config
from .schema import (
    CompilerConfig,
    LoggingConfig,
    PosterPressConfig,
    QueueConfig,
    RestConfig,
    StorageConfig,
    TemplatesConfig,
    WorkerConfig,
)

__all__ = [
    "PosterPressConfig",
    "WorkerConfig",
    "CompilerConfig",
    "QueueConfig",
    "StorageConfig",
    "TemplatesConfig",
    "RestConfig",
    "LoggingConfig",
    "load_config",
    "get_config_path",
    "get_data_dir",
]
