# poster_press/config/loader.py
"""
Configuration loading with auto-creation of defaults.

Uses platformdirs for cross-platform config directory management.
"""

import logging
import os
from pathlib import Path

import yaml
from platformdirs import user_config_path, user_data_path

from .schema import PosterPressConfig

logger = logging.getLogger(__name__)

APP_NAME = "poster-press"

# Secrets are usually injected by the deployment, not written to the YAML file
ENV_OVERRIDES = {
    "POSTER_PRESS_REST_URL": ("rest", "base_url"),
    "POSTER_PRESS_REST_KEY": ("rest", "service_key"),
}


def get_config_path() -> Path:
    """Get path to config file, ensuring config directory exists."""
    config_dir = user_config_path(APP_NAME, ensure_exists=True)
    return config_dir / "config.yaml"


def get_data_dir() -> Path:
    """Get the user data directory (default home of jobs.db and local storage)."""
    return user_data_path(APP_NAME, ensure_exists=True)


def _apply_env_overrides(config: PosterPressConfig) -> PosterPressConfig:
    for env_name, (section, field) in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            setattr(getattr(config, section), field, value)
            logger.info(f"Config {section}.{field} taken from {env_name}")
    return config


def load_config(path: Path | str | None = None) -> PosterPressConfig:
    """
    Load configuration from YAML file.

    If no path is given and the default config file doesn't exist, creates it
    with defaults. An explicit path that doesn't exist is an error.
    Returns validated Pydantic model.

    Raises:
        FileNotFoundError: If an explicit config path doesn't exist
        pydantic.ValidationError: If the file contains invalid values
    """
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        config_path = get_config_path()

        if not config_path.exists():
            default_config = PosterPressConfig()
            config_dict = default_config.model_dump(mode="json")

            with config_path.open("w") as f:
                yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=False)

            logger.info(f"Created default config at {config_path}")
            return _apply_env_overrides(default_config)

    with config_path.open("r") as f:
        config_data = yaml.safe_load(f) or {}

    config = PosterPressConfig(**config_data)
    logger.info(f"Loaded config from {config_path}")
    return _apply_env_overrides(config)
