# jobdaemon/cli.py
"""
CLI interface for jobdaemon.

A daemon has exactly one action, ``run``; any other command is rejected.
"""

import importlib
from enum import Enum
from pathlib import Path
from typing import Optional

import typer
import yaml
from pydantic import ValidationError

from jobdaemon.config.loader import apply_overrides, get_config_path, load_config
from jobdaemon.daemon import Daemon
from jobdaemon.errors import ConfigError

app = typer.Typer(
    name="jobdaemon",
    help="Run a job processor forever, safely.",
    no_args_is_help=True,
)


class IterationMode(str, Enum):
    reactive = "reactive"
    snapshot = "snapshot"


@app.callback()
def main() -> None:
    """Run a job processor forever, safely."""


def load_daemon_class(target: str) -> type[Daemon]:
    """
    Import a Daemon subclass from a 'package.module:ClassName' reference.

    Raises:
        typer.BadParameter: If the reference is malformed or doesn't name a Daemon
    """
    module_name, _, class_name = target.partition(":")
    if not module_name or not class_name:
        raise typer.BadParameter(f"Expected 'module:ClassName', got '{target}'")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise typer.BadParameter(f"Can't import module '{module_name}': {e}") from e

    daemon_class = getattr(module, class_name, None)
    if not isinstance(daemon_class, type) or not issubclass(daemon_class, Daemon):
        raise typer.BadParameter(f"'{target}' is not a Daemon subclass")
    return daemon_class


@app.command("run")
def run_daemon(
    target: str = typer.Argument(..., help="Daemon class as package.module:ClassName"),
    config_file: Path = typer.Option(None, "--config", "-c", help="YAML config file"),
    name: str = typer.Option(None, "--name", help="Process name (pid and log file names)"),
    demonize: Optional[bool] = typer.Option(
        None, "--demonize/--foreground", help="Fork to the background"
    ),
    multi_instance: Optional[bool] = typer.Option(
        None, "--multi-instance/--single-instance", help="Run each job in a forked child"
    ),
    max_child_processes: int = typer.Option(
        None, "--max-child-processes", min=1, help="Maximum concurrent children"
    ),
    connection: list[str] = typer.Option(
        None, "--connection", help="Connection to reopen per iteration (repeatable)"
    ),
    mode: IterationMode = typer.Option(None, "--mode", help="Iteration mode"),
    sleep: float = typer.Option(None, "--sleep", min=0, help="Seconds between job checks"),
):
    """Start the daemon loop. SIGINT/SIGTERM stop it, SIGHUP reloads the config."""
    daemon_class = load_daemon_class(target)

    overrides = {
        "process_name": name,
        "demonize": demonize,
        "is_multi_instance": multi_instance,
        "max_child_processes": max_child_processes,
        "connections": list(connection) if connection else None,
        "mode": mode.value if mode is not None else None,
        "sleep": sleep,
    }

    config_path = config_file if config_file is not None else get_config_path()
    try:
        config = apply_overrides(load_config(config_file), **overrides)
    except (OSError, yaml.YAMLError, ConfigError, ValidationError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    daemon = daemon_class(config=config)
    code = daemon.run_action("run", config_path=config_path, overrides=overrides)
    raise typer.Exit(code)
