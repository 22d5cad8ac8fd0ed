# jobdaemon/background/lifecycle.py
"""
Daemon lifecycle management.

Coordinates startup (logging, demonize, process title, pid file, signal
handlers), the supervisor loop, and shutdown (signal restore, pid file
removal).
"""

import logging
import os
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from setproctitle import setproctitle

from jobdaemon.background.dispatcher import WorkerDispatcher
from jobdaemon.background.registry import ProcessRegistry
from jobdaemon.background.signals import SignalRelay
from jobdaemon.background.state import SupervisorState
from jobdaemon.background.worker import SupervisorLoop
from jobdaemon.config.loader import apply_overrides, load_config
from jobdaemon.config.schema import RELOADABLE_FIELDS, DaemonConfig
from jobdaemon.connections import renew_connections
from jobdaemon.errors import ConfigError, DaemonHalt, ExitCode, PidFileError
from jobdaemon.logging_config import (
    configure_logging,
    discard_buffered_logs,
    flush_logs,
    set_level,
)

if TYPE_CHECKING:
    from jobdaemon.daemon import Daemon

logger = logging.getLogger(__name__)


class DaemonLifecycle:
    """
    Lifecycle coordinator for one daemon run.

    Manages:
        - Log configuration and optional detach to the background
        - Pid file and uptime clock (ProcessRegistry)
        - Signal relay registration and restore
        - Configuration reload on SIGHUP
        - Fatal halts with exit codes
    """

    def __init__(
        self,
        daemon: "Daemon",
        config_path: str | Path | None = None,
        overrides: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize lifecycle manager.

        Args:
            daemon: Daemon providing jobs, job execution and hooks
            config_path: File the config was loaded from (None = reload is a no-op)
            overrides: CLI values re-applied on top of the file at reload
        """
        self._daemon = daemon
        self._config: DaemonConfig = daemon.config
        self._config_path = Path(config_path) if config_path is not None else None
        self._overrides = overrides or {}
        self._process_name = daemon.get_process_name()
        self._foreground = not self._config.demonize

        self._state: SupervisorState | None = None
        self._registry: ProcessRegistry | None = None
        self._relay: SignalRelay | None = None
        self._loop: SupervisorLoop | None = None

    @property
    def process_name(self) -> str:
        return self._process_name

    @property
    def log_file(self) -> Path:
        return Path(self._config.log_dir) / f"{self._process_name}.log"

    @property
    def state(self) -> SupervisorState | None:
        """Supervisor state (for inspection/testing)."""
        return self._state

    @property
    def loop(self) -> SupervisorLoop | None:
        """Supervisor loop (for inspection/testing)."""
        return self._loop

    def run(self) -> int:
        """
        Run the daemon until it stops.

        Returns:
            Process exit code
        """
        configure_logging(self._config.logging, self.log_file, foreground=self._foreground)

        try:
            if self._config.demonize:
                self._demonize()
            setproctitle(self._process_name)
            self._startup()
            return self._loop.run()
        except DaemonHalt as e:
            return self.halt(e.code, e.message)
        finally:
            self._shutdown()

    def _demonize(self) -> None:
        """
        Fork to the background and detach from the terminal.

        The parent leaves through DaemonHalt(OK); the child continues.
        """
        flush_logs()
        try:
            pid = os.fork()
        except OSError as e:
            raise DaemonHalt(ExitCode.UNSPECIFIED_ERROR, f"fork() raised error: {e}") from e

        if pid:
            # The detached child writes the records still in the buffer
            discard_buffered_logs()
            raise DaemonHalt(ExitCode.OK)

        os.setsid()
        self._close_std_streams()
        self._foreground = False
        configure_logging(self._config.logging, self.log_file, foreground=False)

    def _close_std_streams(self) -> None:
        """Point stdin, stdout and stderr at /dev/null."""
        devnull = os.open(os.devnull, os.O_RDWR)
        try:
            for fd in (0, 1, 2):
                os.dup2(devnull, fd)
        finally:
            if devnull > 2:
                os.close(devnull)

    def _startup(self) -> None:
        self._state = SupervisorState(process_name=self._process_name)
        self._registry = ProcessRegistry(
            self._process_name,
            self._config.pid_dir,
            self._config.memory_limit,
            started_at=self._state.started_at,
        )
        self._daemon.registry = self._registry

        # Handlers go in first: a stop signal must never find a pid file
        # that the default action would leave behind
        self._relay = SignalRelay(
            self._state, self._registry.uptime_string, on_reload=self.reload
        )
        self._relay.install()

        try:
            self._registry.start()
        except PidFileError as e:
            raise DaemonHalt(ExitCode.UNSPECIFIED_ERROR, str(e)) from e

        dispatcher = WorkerDispatcher(
            self._daemon,
            self._state,
            self._daemon.hooks,
            multi_instance=self._config.is_multi_instance,
            renew_connections=self.renew_connections,
            after_fork=self._relay.clear,
        )
        self._loop = SupervisorLoop(
            self._daemon,
            dispatcher,
            self._state,
            self._relay,
            self._registry,
            self._daemon.hooks,
            self._config,
            renew_connections=self.renew_connections,
        )

    def _shutdown(self) -> None:
        if self._relay is not None:
            self._relay.restore()
            self._relay = None
        if self._registry is not None:
            self._registry.release()
        flush_logs()

    def renew_connections(self) -> None:
        renew_connections(self._daemon.connections, self._config.connections)

    def reload(self) -> None:
        """
        Re-read the config file and apply its runtime-tunable fields.

        Only sleep, admission_poll_interval, max_child_processes,
        memory_limit, connections and the log level change; mode, pooling,
        demonize and paths keep their startup values. An unreadable or
        invalid file leaves the running config untouched.
        """
        if self._config_path is None:
            logger.info("Daemon was started without a config file, reload is a no-op")
            return

        try:
            fresh = apply_overrides(load_config(self._config_path), **self._overrides)
        except (OSError, yaml.YAMLError, ConfigError, ValidationError) as e:
            logger.error(f"Reload of {self._config_path} failed, keeping current config: {e}")
            return

        update: dict[str, Any] = {field: getattr(fresh, field) for field in RELOADABLE_FIELDS}
        update["logging"] = self._config.logging.model_copy(
            update={"level": fresh.logging.level}
        )
        self._config = self._config.model_copy(update=update)
        self._daemon.config = self._config

        set_level(self._config.logging.level)
        if self._registry is not None:
            self._registry.set_memory_limit(self._config.memory_limit)
        if self._loop is not None:
            self._loop.apply_config(self._config)

    def halt(self, code: int, message: str | None = None) -> int:
        """
        Log the reason for stopping and echo it to the console in foreground.

        Args:
            code: Exit code
            message: Optional message

        Returns:
            The exit code, for the caller to exit with
        """
        if message is not None:
            if code == ExitCode.UNSPECIFIED_ERROR:
                logger.error(message)
            else:
                logger.debug(message)
            if self._foreground:
                self._write_console(message, error=code != ExitCode.OK)
        return int(code)

    def _write_console(self, message: str, error: bool = False) -> None:
        stamp = escape(f"[{time.strftime('%d.%m.%Y %H:%M:%S')}]")
        text = f"[red]{escape(message)}[/red]" if error else escape(message)
        Console().print(f"[bold]{stamp}[/bold] {text}", soft_wrap=True)
