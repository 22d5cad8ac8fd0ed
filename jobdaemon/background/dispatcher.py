# jobdaemon/background/dispatcher.py
"""
Worker dispatcher: runs one job in-process or in a forked child.

In multi-instance mode dispatch is fire-and-forget. The parent registers the
child and returns at once; the child runs the job and leaves through
os._exit() with the job's result as exit status, which the signal relay
collects when it reaps.
"""

import logging
import os
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, NoReturn

from jobdaemon.background.hooks import HookRegistry, LifecycleEvent
from jobdaemon.background.state import SupervisorState
from jobdaemon.errors import ExitCode
from jobdaemon.logging_config import discard_buffered_logs, flush_logs

if TYPE_CHECKING:
    from jobdaemon.daemon import JobExecutor

logger = logging.getLogger(__name__)


class WorkerDispatcher:
    """Executes jobs according to the pooling mode."""

    def __init__(
        self,
        executor: "JobExecutor",
        state: SupervisorState,
        hooks: HookRegistry,
        multi_instance: bool = False,
        renew_connections: Callable[[], None] | None = None,
        after_fork: Callable[[], None] | None = None,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            executor: Runs a single job and reports success
            state: Supervisor state holding the active children
            hooks: Hook registry fired around each job
            multi_instance: Fork a child per job instead of running in-process
            renew_connections: Reopens external connections in a new child
            after_fork: Extra child-side setup right after fork
        """
        self._executor = executor
        self._state = state
        self._hooks = hooks
        self.multi_instance = multi_instance
        self._renew_connections = renew_connections
        self._after_fork = after_fork

    def dispatch(self, job: Any) -> bool:
        """
        Run a job.

        In-process mode returns the job's result. Multi-instance mode returns
        True once the child is forked, or False if fork failed.
        """
        if not self.multi_instance:
            return self._run_with_hooks(job)

        # Records still buffered would otherwise be written by both processes
        flush_logs()
        try:
            pid = os.fork()
        except OSError as e:
            logger.error(f"Can't fork worker for job {job!r}: {e}")
            return False

        if pid:
            self._state.register_child(pid, repr(job))
            logger.debug(f"Forked child process #{pid} for job {job!r}")
            return True

        self._run_child(job)

    def _run_with_hooks(self, job: Any) -> bool:
        self._hooks.trigger(LifecycleEvent.BEFORE_JOB)
        status = self._execute(job)
        self._hooks.trigger(LifecycleEvent.AFTER_JOB)
        return status

    def _execute(self, job: Any) -> bool:
        try:
            return bool(self._executor.run(job))
        except Exception as e:
            logger.exception(f"Job {job!r} raised {type(e).__name__}: {e}")
            return False

    def _run_child(self, job: Any) -> NoReturn:
        """Child side of fork. Never returns."""
        code = ExitCode.UNSPECIFIED_ERROR
        try:
            discard_buffered_logs()
            if self._after_fork is not None:
                self._after_fork()
            if self._renew_connections is not None:
                self._renew_connections()

            if self._run_with_hooks(job):
                code = ExitCode.OK
            else:
                logger.error(f"Child process #{os.getpid()} return error.")
        except Exception:
            logger.exception(f"Child process #{os.getpid()} crashed")
        finally:
            flush_logs()
            os._exit(code)
