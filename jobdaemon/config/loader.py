# jobdaemon/config/loader.py
"""
Configuration loading with auto-creation of defaults.

Uses platformdirs for cross-platform config directory management.
"""

import logging
from pathlib import Path
from typing import Any

import yaml
from platformdirs import user_config_path

from jobdaemon.errors import ConfigError

from .schema import DaemonConfig

logger = logging.getLogger(__name__)


def get_config_path() -> Path:
    """Get path to the default config file, ensuring its directory exists."""
    config_dir = user_config_path("jobdaemon", ensure_exists=True)
    return config_dir / "config.yaml"


def load_config(path: str | Path | None = None) -> DaemonConfig:
    """
    Load configuration from a YAML file.

    If no path is given, the per-user default file is used and created with
    defaults when it doesn't exist yet. An explicit path must exist.

    Args:
        path: Optional path to a YAML config file

    Returns:
        Validated DaemonConfig

    Raises:
        FileNotFoundError: If an explicit path doesn't exist
        ConfigError: If the top level of the file is not a mapping
        pydantic.ValidationError: If the file contents are invalid
    """
    if path is None:
        config_path = get_config_path()
        if not config_path.exists():
            default_config = DaemonConfig()
            config_dict = default_config.model_dump(mode="json")

            with config_path.open("w") as f:
                yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=False)

            logger.info(f"Created default config at {config_path}")
            return default_config
    else:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open("r") as f:
        config_data = yaml.safe_load(f) or {}

    if not isinstance(config_data, dict):
        raise ConfigError(
            f"Config file {config_path} must hold a mapping of options, "
            f"got {type(config_data).__name__}"
        )

    config = DaemonConfig(**config_data)
    logger.info(f"Loaded config from {config_path}")
    return config


def apply_overrides(config: DaemonConfig, **overrides: Any) -> DaemonConfig:
    """
    Return a copy of config with the non-None overrides applied.

    CLI options default to None so that values from the file survive unless
    the option was given explicitly.
    """
    update = {key: value for key, value in overrides.items() if value is not None}
    if not update:
        return config
    return DaemonConfig(**{**config.model_dump(), **update})
