# jobdaemon/background/signals.py
"""
Signal relay for the supervisor loop.

OS signal handlers only record which signals arrived. The supervisor calls
dispatch() at its poll points (iteration start, admission-wait tick, sleep
tick, after each dispatch) and the recorded signals are applied there, from
the main control flow:

    SIGINT, SIGTERM  request stop
    SIGCHLD          reap every exited pool child
    SIGUSR1          report uptime to syslog
    SIGHUP           reload configuration
"""

import logging
import os
import signal
import syslog
from collections.abc import Callable
from typing import Any

from jobdaemon.background.state import SupervisorState

logger = logging.getLogger(__name__)

HANDLED_SIGNALS = (
    signal.SIGINT,
    signal.SIGTERM,
    signal.SIGHUP,
    signal.SIGUSR1,
    signal.SIGCHLD,
)


class SignalRelay:
    """
    Records signals asynchronously and applies them at poll points.

    Several SIGCHLD deliveries may collapse into one, so a single reap pass
    collects every child that has exited so far.
    """

    def __init__(
        self,
        state: SupervisorState,
        uptime: Callable[[], str],
        on_reload: Callable[[], None] | None = None,
    ) -> None:
        """
        Initialize the relay.

        Args:
            state: Supervisor state mutated by stop requests and reaping
            uptime: Returns the formatted uptime for SIGUSR1 reports
            on_reload: Called on SIGHUP (None = reload is a logged no-op)
        """
        self._state = state
        self._uptime = uptime
        self._on_reload = on_reload
        self._pending: set[int] = set()
        self._previous: dict[int, Any] = {}

    @property
    def pending(self) -> frozenset[int]:
        return frozenset(self._pending)

    def install(self) -> None:
        """Register the recording handler for every handled signal."""
        for signum in HANDLED_SIGNALS:
            self._previous[signum] = signal.signal(signum, self._record)
        logger.debug("Signal handlers registered")

    def restore(self) -> None:
        """Put back the handlers that were active before install()."""
        for signum, handler in self._previous.items():
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
        self._previous.clear()

    def _record(self, signum: int, frame: Any) -> None:
        self._pending.add(signum)

    def notify(self, signum: int) -> None:
        """Record a signal as if the OS had delivered it."""
        self._pending.add(signum)

    def clear(self) -> None:
        """Forget pending signals (used by forked children)."""
        self._pending.clear()

    def dispatch(self) -> None:
        """Apply every pending signal."""
        while self._pending:
            signum = self._pending.pop()
            self._apply(signum)

    def _apply(self, signum: int) -> None:
        if signum in (signal.SIGINT, signal.SIGTERM):
            logger.info(f"Catch {signal.Signals(signum).name} signal")
            self._state.request_stop()
        elif signum == signal.SIGCHLD:
            self.reap_children()
        elif signum == signal.SIGUSR1:
            message = f"Process uptime: {self._uptime()}"
            syslog.syslog(syslog.LOG_INFO, message)
            logger.info(message)
        elif signum == signal.SIGHUP:
            if self._on_reload is None:
                logger.info("Catch SIGHUP signal, no reload handler; ignoring")
            else:
                logger.info("Catch SIGHUP signal, reloading configuration")
                self._on_reload()

    def reap_children(self) -> list[int]:
        """
        Collect every exited child of the pool without blocking.

        Only pids registered in SupervisorState.active_children are waited
        on. Processes the job code spawns on its own stay with their owner,
        whose wait() still sees the real exit status.

        Returns:
            Pids reaped in this pass
        """
        reaped: list[int] = []
        for pid in list(self._state.active_children):
            try:
                waited, status = os.waitpid(pid, os.WNOHANG)
            except ChildProcessError:
                # Already collected elsewhere, the slot is free either way
                child = self._state.remove_child(pid)
                job = f" (job {child.job})" if child and child.job else ""
                logger.warning(f"Child process #{pid}{job} was reaped elsewhere")
                reaped.append(pid)
                continue
            if waited == 0:
                continue

            child = self._state.remove_child(pid)
            exit_code = os.waitstatus_to_exitcode(status)
            job = f" (job {child.job})" if child and child.job else ""
            if exit_code == 0:
                logger.debug(f"Child process #{pid}{job} finished")
            else:
                logger.warning(f"Child process #{pid}{job} exited with code {exit_code}")
            reaped.append(pid)
        return reaped
