# jobdaemon/background/state.py
"""
Process-wide supervisor state.

One SupervisorState exists per daemon process. A forked child gets a private
copy of it and never writes back: the parent learns about the child only
through its exit status, collected by the reaper.
"""

import os
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class ChildProcess:
    """A forked worker executing exactly one job."""

    pid: int
    registered_at: datetime
    job: str | None = None  # repr of the job, for log lines


@dataclass
class SupervisorState:
    """
    Mutable daemon state shared by the supervisor loop and the signal relay.

    Both sides only touch it from the main control flow (the relay applies
    signals at poll points), so no lock is needed.
    """

    process_name: str
    own_pid: int = field(default_factory=os.getpid)
    started_at: float = field(default_factory=time.monotonic)
    active_children: dict[int, ChildProcess] = field(default_factory=dict)
    _stop_requested: bool = field(default=False, init=False, repr=False)

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def request_stop(self) -> None:
        """Ask the loop to stop. There is no way back."""
        self._stop_requested = True

    def register_child(self, pid: int, job: str | None = None) -> ChildProcess:
        child = ChildProcess(pid=pid, registered_at=datetime.now(timezone.utc), job=job)
        self.active_children[pid] = child
        return child

    def remove_child(self, pid: int) -> ChildProcess | None:
        return self.active_children.pop(pid, None)

    @property
    def active_count(self) -> int:
        return len(self.active_children)
