# jobdaemon/background/memory.py
"""Memory watchdog for the supervising process."""

import os

import psutil


class MemoryMonitor:
    """
    Samples the resident memory of one process and compares it to a ceiling.

    The supervisor checks once at the top of every iteration and stops for
    good when the ceiling is exceeded; a leaking daemon is restarted by its
    external supervisor rather than left to grow.
    """

    def __init__(self, limit_bytes: int, pid: int | None = None):
        """
        Initialize memory monitor.

        Args:
            limit_bytes: RSS ceiling in bytes
            pid: Process to watch. Defaults to whichever process calls check_once(),
                so a monitor created before demonizing follows the detached process.
        """
        self.limit_bytes = limit_bytes
        self._pid = pid

    def usage(self) -> int:
        """Current resident set size in bytes."""
        pid = self._pid if self._pid is not None else os.getpid()
        return psutil.Process(pid).memory_info().rss

    def check_once(self) -> tuple[int, bool]:
        """
        Check current memory usage once.

        Returns:
            (usage_bytes, exceeded): Current RSS and whether it is above the limit.
        """
        usage = self.usage()
        return usage, usage > self.limit_bytes
