# jobdaemon/daemon.py
"""
Capability interfaces and the Daemon base class.

A concrete daemon subclasses Daemon and supplies two things: where jobs come
from (list_pending) and how one job runs (run). Everything else, the loop,
forking, signals and pid file, is handled by the supervisor.

Example:

    class MailerDaemon(Daemon):
        def list_pending(self):
            return outbox.unsent_ids()

        def run(self, job):
            return outbox.send(job)
"""

import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any

from jobdaemon.background.hooks import HookRegistry, LifecycleEvent
from jobdaemon.config.schema import DaemonConfig
from jobdaemon.connections import ConnectionManager
from jobdaemon.errors import UnsupportedActionError

if TYPE_CHECKING:
    from jobdaemon.background.registry import ProcessRegistry

RUN_ACTION = "run"


class JobSource(ABC):
    """Produces the pending jobs for each iteration."""

    @abstractmethod
    def list_pending(self) -> list[Any]:
        """
        Return the current pending jobs, in dispatch order.

        Jobs can come from a database, a queue (RabbitMQ, Redis, ZeroMQ),
        a directory listing and so on. An empty list means nothing to do.
        """
        pass

    def extract_next(self, jobs: list[Any]) -> Any | None:
        """
        Take the next job out of the list (reactive mode).

        The default removes from the front. Override to pick by priority or
        to look at a source that changes between extractions.

        Returns:
            The next job, or None when there are no more
        """
        if not jobs:
            return None
        return jobs.pop(0)


class JobExecutor(ABC):
    """Executes a single job."""

    @abstractmethod
    def run(self, job: Any) -> bool:
        """
        Execute one job.

        Returns:
            True on success, False on failure
        """
        pass


def _kebab(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "-", name).lower()


class Daemon(JobSource, JobExecutor):
    """
    Base class for supervised job daemons.

    Attributes:
        process_name: Optional class-level process name. When neither this
            nor config.process_name is set, the class name is used in
            kebab-case (MailerDaemon -> mailer-daemon).
    """

    process_name: str | None = None

    def __init__(
        self,
        config: DaemonConfig | None = None,
        connections: ConnectionManager | None = None,
    ) -> None:
        self.config = config or DaemonConfig()
        self.connections = connections
        self.hooks = HookRegistry()
        self.registry: "ProcessRegistry | None" = None

    def get_process_name(self) -> str:
        """Name used for the process title, pid file and log file."""
        return self.config.process_name or self.process_name or _kebab(type(self).__name__)

    def get_uptime(self) -> timedelta:
        """Time since the daemon started (zero before it runs)."""
        if self.registry is None:
            return timedelta(0)
        return self.registry.uptime()

    def on(self, event: LifecycleEvent | str, callback: Callable[[], None]) -> None:
        """Register a hook callback, e.g. daemon.on("before_job", fn)."""
        self.hooks.register(LifecycleEvent(event), callback)

    def run_action(
        self,
        action: str = RUN_ACTION,
        config_path: str | Path | None = None,
        overrides: dict[str, Any] | None = None,
    ) -> int:
        """
        Run the named action. ``run`` is the only one a daemon has.

        Args:
            action: Action name
            config_path: Config file the daemon was loaded from (enables reload)
            overrides: CLI values that take precedence over the file on reload

        Returns:
            Process exit code

        Raises:
            UnsupportedActionError: For any action other than ``run``
        """
        if action != RUN_ACTION:
            raise UnsupportedActionError(
                f"Only the '{RUN_ACTION}' action is allowed in daemons, got '{action}'"
            )

        from jobdaemon.background.lifecycle import DaemonLifecycle

        return DaemonLifecycle(self, config_path=config_path, overrides=overrides).run()
