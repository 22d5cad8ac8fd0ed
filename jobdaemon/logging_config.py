# jobdaemon/logging_config.py
"""
Daemon log configuration.

All records go to {log_dir}/{process_name}.log through an in-memory buffer.
Forked children inherit that buffer, so the dispatcher flushes it before
fork and the child discards its copy right after.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from jobdaemon.config.schema import LoggingConfig

TEXT_FORMAT = "%(asctime)s  %(process)d  %(levelname)-7s  %(name)s  %(message)s"


class JsonFormatter(logging.Formatter):
    """Formats log records as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON line."""
        log_data: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "pid": record.process,
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        # Include exception info if present
        if record.exc_info:
            log_data["exc"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


class ExcludeLoggersFilter(logging.Filter):
    """Drops records whose logger name starts with one of the given prefixes."""

    def __init__(self, prefixes: list[str]) -> None:
        super().__init__()
        self._prefixes = tuple(prefixes)

    def filter(self, record: logging.LogRecord) -> bool:
        return not any(
            record.name == prefix or record.name.startswith(prefix + ".")
            for prefix in self._prefixes
        )


def _make_formatter(config: LoggingConfig) -> logging.Formatter:
    if config.format == "json":
        return JsonFormatter()
    return logging.Formatter(TEXT_FORMAT)


def configure_logging(
    config: LoggingConfig,
    log_file: Path | None,
    foreground: bool = True,
) -> None:
    """
    Configure the root logger for a daemon process.

    Clears existing handlers, then installs a rotating file handler behind a
    MemoryHandler buffer and, in foreground mode only, a stderr handler.

    Args:
        config: Logging section of the daemon config
        log_file: Path of the daemon log (None = no file output)
        foreground: Whether console output is allowed
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = _make_formatter(config)
    excluded = ExcludeLoggersFilter(config.excluded_loggers)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)

        buffer = logging.handlers.MemoryHandler(
            capacity=config.buffer_capacity,
            flushLevel=logging.ERROR,
            target=file_handler,
        )
        buffer.addFilter(excluded)
        root.addHandler(buffer)

    if foreground:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(
            logging.Formatter("%(asctime)s  %(levelname)-7s  %(message)s", datefmt="%H:%M:%S")
        )
        console.addFilter(excluded)
        root.addHandler(console)

    root.setLevel(config.level)


def set_level(level: str) -> None:
    """Change the root log level (used by configuration reload)."""
    logging.getLogger().setLevel(level)


def flush_logs() -> None:
    """Write every buffered record to its target."""
    for handler in logging.getLogger().handlers:
        handler.flush()


def discard_buffered_logs() -> None:
    """
    Drop records buffered but not yet written.

    Called in a freshly forked child: the parent still owns those records
    and writes them itself.
    """
    for handler in logging.getLogger().handlers:
        if isinstance(handler, logging.handlers.BufferingHandler):
            handler.acquire()
            try:
                handler.buffer.clear()
            finally:
                handler.release()
