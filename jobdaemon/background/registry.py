# jobdaemon/background/registry.py
"""
Process-lifetime registry: pid file, uptime clock and memory watchdog.

The pid file lets external supervisors (init scripts, monit, cron checks)
find the running daemon. It is removed at shutdown only by the process whose
pid it contains, so a stale instance can't delete a newer instance's file.
"""

import logging
import os
import time
from datetime import timedelta
from pathlib import Path

from jobdaemon.background.memory import MemoryMonitor
from jobdaemon.errors import PidFileError

logger = logging.getLogger(__name__)

PID_DIR_MODE = 0o744


def format_uptime(seconds: float) -> str:
    """
    Format an uptime as 'HH:MM:SS hours', with a day count beyond 24 hours.

    >>> format_uptime(3725)
    '01:02:05 hours'
    >>> format_uptime(90061)
    '1 day(s) 01:01:01 hours'
    """
    total = int(seconds)
    days, rest = divmod(total, 24 * 60 * 60)
    hours, rest = divmod(rest, 60 * 60)
    minutes, secs = divmod(rest, 60)
    clock = f"{hours:02d}:{minutes:02d}:{secs:02d} hours"
    if days:
        return f"{days} day(s) {clock}"
    return clock


class PidFile:
    """On-disk record of a daemon's process id."""

    def __init__(self, pid_dir: str | Path, process_name: str) -> None:
        self._dir = Path(pid_dir)
        self.path = self._dir / process_name

    def write(self, pid: int) -> None:
        """
        Write pid to the file, creating the directory if needed.

        Raises:
            PidFileError: If the directory or file can't be written
        """
        try:
            self._dir.mkdir(mode=PID_DIR_MODE, parents=True, exist_ok=True)
            self.path.write_text(str(pid))
        except OSError as e:
            raise PidFileError(f"Can't create pid file {self.path}: {e}") from e

    def read(self) -> int | None:
        """Return the stored pid, or None if the file is missing or unreadable."""
        try:
            return int(self.path.read_text().strip())
        except (OSError, ValueError):
            return None

    def remove(self, pid: int) -> bool:
        """
        Delete the file if it stores this pid.

        A missing file is logged as an error but doesn't raise: shutdown
        must carry on.

        Returns:
            True if the file was deleted
        """
        if not self.path.exists():
            logger.error(f"Can't unlink pid file {self.path}: file is missing")
            return False

        stored = self.read()
        if stored != pid:
            logger.info(
                f"Pid file {self.path} belongs to pid {stored}, not {pid}; leaving it"
            )
            return False

        try:
            self.path.unlink()
        except FileNotFoundError:
            logger.error(f"Can't unlink pid file {self.path}: file is missing")
            return False
        return True


class ProcessRegistry:
    """Owns the pid file, uptime clock and memory watchdog of one daemon."""

    def __init__(
        self,
        process_name: str,
        pid_dir: str | Path,
        memory_limit: int,
        started_at: float | None = None,
    ) -> None:
        """
        Initialize the registry.

        Args:
            process_name: Name used for the pid file
            pid_dir: Directory holding pid files
            memory_limit: RSS ceiling in bytes
            started_at: time.monotonic() value uptime counts from
                (None = now). The lifecycle passes SupervisorState.started_at.
        """
        self.process_name = process_name
        self.pid_file = PidFile(pid_dir, process_name)
        self.memory = MemoryMonitor(memory_limit)
        self._started_at = started_at if started_at is not None else time.monotonic()
        self._pid: int | None = None

    @property
    def pid(self) -> int | None:
        """Pid recorded by start(), None before that."""
        return self._pid

    def start(self) -> None:
        """
        Record the current pid in the pid file.

        Call after demonizing: the pid that matters is the detached one.

        Raises:
            PidFileError: If the pid file can't be written
        """
        pid = os.getpid()
        self.pid_file.write(pid)
        self._pid = pid
        logger.info(f"Daemon {self.process_name} pid {self._pid} started.")

    def release(self) -> None:
        """Remove the pid file if it is still ours."""
        if self._pid is None:
            return
        self.pid_file.remove(self._pid)

    def set_memory_limit(self, limit_bytes: int) -> None:
        self.memory.limit_bytes = limit_bytes

    def uptime(self) -> timedelta:
        return timedelta(seconds=time.monotonic() - self._started_at)

    def uptime_string(self) -> str:
        return format_uptime(self.uptime().total_seconds())
