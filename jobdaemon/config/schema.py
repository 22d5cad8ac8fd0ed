# jobdaemon/config/schema.py
"""
Pydantic configuration models for jobdaemon.

All models use extra="ignore" to allow unknown YAML keys without crashing.
"""

from typing import Literal

from platformdirs import user_log_path, user_runtime_path
from pydantic import BaseModel, ConfigDict, Field

# Fields that a SIGHUP reload may change on a running daemon
RELOADABLE_FIELDS = (
    "sleep",
    "admission_poll_interval",
    "max_child_processes",
    "memory_limit",
    "connections",
)


def _default_pid_dir() -> str:
    return str(user_runtime_path("jobdaemon") / "pids")


def _default_log_dir() -> str:
    return str(user_log_path("jobdaemon"))


class LoggingConfig(BaseModel):
    """Daemon log file configuration."""

    model_config = ConfigDict(extra="ignore")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Minimum level written to the daemon log"
    )
    format: Literal["text", "json"] = Field(
        default="text", description="Log line format"
    )
    max_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=0,
        description="Rotate the log file once it exceeds this size (0 disables rotation)",
    )
    backup_count: int = Field(
        default=10, ge=0, description="Number of rotated log files to keep"
    )
    buffer_capacity: int = Field(
        default=1,
        ge=1,
        description="Records buffered in memory before they are written to disk",
    )
    excluded_loggers: list[str] = Field(
        default_factory=lambda: ["sqlalchemy", "sqlite3"],
        description="Logger name prefixes kept out of the daemon log",
    )


class DaemonConfig(BaseModel):
    """Root configuration for a supervised daemon."""

    model_config = ConfigDict(extra="ignore")

    process_name: str | None = Field(
        default=None,
        description="Process name (None = derived from the daemon class)",
    )
    demonize: bool = Field(
        default=False, description="Fork to the background and detach from the terminal"
    )
    is_multi_instance: bool = Field(
        default=False, description="Run each job in its own forked child process"
    )
    max_child_processes: int = Field(
        default=10, ge=1, description="Maximum number of concurrently running children"
    )
    connections: list[str] = Field(
        default_factory=list,
        description="Named connections to reopen before each iteration and after fork",
    )
    mode: Literal["reactive", "snapshot"] = Field(
        default="reactive",
        description="reactive: extract jobs one by one; snapshot: dispatch a fixed batch",
    )
    sleep: float = Field(
        default=5.0, ge=0.0, description="Seconds to sleep between job list checks"
    )
    admission_poll_interval: float = Field(
        default=1.0,
        gt=0.0,
        description="Seconds between checks for a free worker slot",
    )
    memory_limit: int = Field(
        default=268435456,
        gt=0,
        description="Resident memory ceiling in bytes; exceeding it stops the daemon",
    )
    pid_dir: str = Field(
        default_factory=_default_pid_dir, description="Directory holding pid files"
    )
    log_dir: str = Field(
        default_factory=_default_log_dir, description="Directory holding daemon logs"
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
