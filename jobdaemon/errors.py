# jobdaemon/errors.py
"""Exit codes and exception types of the daemon runtime."""

from enum import IntEnum


class ExitCode(IntEnum):
    """Process exit codes."""

    OK = 0
    UNSPECIFIED_ERROR = 1


class DaemonError(Exception):
    """Base class for daemon runtime errors."""


class PidFileError(DaemonError):
    """Raised when the pid file cannot be written."""


class UnsupportedActionError(DaemonError):
    """Raised when an action other than ``run`` is requested from a daemon."""


class DaemonHalt(DaemonError):
    """
    Unwinds the supervising process with an exit code.

    Raised by ``halt()`` so that shutdown (pid file removal, signal handler
    restore) still runs in the parent before the process exits.
    """

    def __init__(self, code: int, message: str | None = None) -> None:
        super().__init__(message or f"daemon halted with exit code {code}")
        self.code = code
        self.message = message


class ConfigError(DaemonError, ValueError):
    """Raised when a config file parses but doesn't describe a DaemonConfig."""
