# jobdaemon/background/worker.py
"""
Supervisor loop: polls the job source and drives the worker dispatcher.

Two iteration modes:
    reactive  extract jobs one at a time with JobSource.extract_next() until
              it returns None; the source may change between extractions.
              Sleeps only when the iteration found no jobs.
    snapshot  dispatch the list returned by list_pending() as-is, then
              always sleep.

The loop is the only place that waits. Each wait (inter-iteration sleep,
full-pool admission wait) is cut into ticks and pending signals are applied
on every tick, so children get reaped and stop requests get noticed while
the loop is blocked.
"""

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from jobdaemon.background.dispatcher import WorkerDispatcher
from jobdaemon.background.hooks import HookRegistry, LifecycleEvent
from jobdaemon.background.registry import ProcessRegistry
from jobdaemon.background.signals import SignalRelay
from jobdaemon.background.state import SupervisorState
from jobdaemon.config.schema import DaemonConfig
from jobdaemon.errors import DaemonHalt, ExitCode

if TYPE_CHECKING:
    from jobdaemon.daemon import JobSource

logger = logging.getLogger(__name__)


class SupervisorLoop:
    """
    Top-level control flow of a daemon process.

    Features:
        - Memory ceiling check at the top of every iteration (fatal)
        - Pool admission: blocks while max_child_processes children are active
        - Cooperative stop: no new job is admitted once stop is requested;
          children already forked run to completion
    """

    def __init__(
        self,
        source: "JobSource",
        dispatcher: WorkerDispatcher,
        state: SupervisorState,
        relay: SignalRelay,
        registry: ProcessRegistry,
        hooks: HookRegistry,
        config: DaemonConfig,
        renew_connections: Callable[[], None] | None = None,
    ) -> None:
        self._source = source
        self._dispatcher = dispatcher
        self._state = state
        self._relay = relay
        self._registry = registry
        self._hooks = hooks
        self._config = config
        self._renew_connections = renew_connections
        self.iterations = 0

    @property
    def config(self) -> DaemonConfig:
        return self._config

    def apply_config(self, config: DaemonConfig) -> None:
        """Switch to a new config; takes effect at the next wait or iteration."""
        self._config = config
        logger.info(
            f"Applied config: sleep={config.sleep}s, "
            f"max_child_processes={config.max_child_processes}, "
            f"memory_limit={config.memory_limit}"
        )

    def run(self) -> int:
        """
        Run iterations until stop is requested.

        Returns:
            ExitCode.OK after a requested stop, ExitCode.UNSPECIFIED_ERROR
            after a memory limit breach

        Raises:
            DaemonHalt: If a job fails in single-instance mode
        """
        name = self._state.process_name
        pid = self._state.own_pid

        while not self._state.stop_requested:
            self._relay.dispatch()
            if self._state.stop_requested:
                break

            usage, exceeded = self._registry.memory.check_once()
            if exceeded:
                logger.error(
                    f"Daemon {name} pid {pid} used {usage} bytes on "
                    f"{self._config.memory_limit} bytes allowed by memory limit"
                )
                return ExitCode.UNSPECIFIED_ERROR

            self._hooks.trigger(LifecycleEvent.BEFORE_ITERATION)
            if self._renew_connections is not None:
                self._renew_connections()

            jobs = list(self._source.list_pending() or [])
            if self._config.mode == "snapshot":
                self._run_snapshot(jobs)
            else:
                self._run_reactive(jobs)

            self._relay.dispatch()
            self._hooks.trigger(LifecycleEvent.AFTER_ITERATION)
            self.iterations += 1

        logger.info(f"Daemon {name} pid {pid} is stopped.")
        return ExitCode.OK

    def _run_reactive(self, jobs: list[Any]) -> None:
        if not jobs:
            self._sleep(self._config.sleep)
            return

        while True:
            job = self._source.extract_next(jobs)
            if job is None:
                return
            if not self._admit():
                return
            self._dispatch(job)

    def _run_snapshot(self, jobs: list[Any]) -> None:
        # Changes to the source after list_pending() show up next iteration
        for job in jobs:
            if not self._admit():
                return
            self._dispatch(job)
        self._sleep(self._config.sleep)

    def _pool_full(self) -> bool:
        return (
            self._dispatcher.multi_instance
            and self._state.active_count >= self._config.max_child_processes
        )

    def _admit(self) -> bool:
        """
        Wait for a free worker slot.

        Returns:
            False if stop was requested instead
        """
        if self._state.stop_requested:
            return False

        if self._pool_full():
            logger.info("Reached maximum number of child processes. Waiting...")
            while self._pool_full():
                time.sleep(self._config.admission_poll_interval)
                self._relay.dispatch()
                if self._state.stop_requested:
                    return False
            free = self._config.max_child_processes - self._state.active_count
            logger.info(f"Free workers found: {free} worker(s). Delegate tasks.")

        self._relay.dispatch()
        return not self._state.stop_requested

    def _dispatch(self, job: Any) -> None:
        if self._dispatcher.dispatch(job):
            return

        if self._dispatcher.multi_instance:
            logger.error(f"Job {job!r} was not dispatched, continuing")
            return

        raise DaemonHalt(
            ExitCode.UNSPECIFIED_ERROR,
            f"Job {job!r} failed, daemon {self._state.process_name} stops",
        )

    def _sleep(self, seconds: float) -> None:
        """Sleep in ticks, applying signals between ticks; wakes early on stop."""
        deadline = time.monotonic() + seconds
        while not self._state.stop_requested:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            time.sleep(min(remaining, self._config.admission_poll_interval))
            self._relay.dispatch()
