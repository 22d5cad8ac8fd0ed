# jobdaemon/config/__init__.py
"""Configuration system for jobdaemon."""

from .loader import apply_overrides, get_config_path, load_config
from .schema import RELOADABLE_FIELDS, DaemonConfig, LoggingConfig

__all__ = [
    "DaemonConfig",
    "LoggingConfig",
    "RELOADABLE_FIELDS",
    "apply_overrides",
    "load_config",
    "get_config_path",
]
