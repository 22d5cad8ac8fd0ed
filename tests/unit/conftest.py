# tests/unit/conftest.py
"""Shared fixtures for the jobdaemon unit tests."""

import logging
import signal
from pathlib import Path

import pytest

from jobdaemon.background.signals import HANDLED_SIGNALS
from jobdaemon.config.schema import DaemonConfig


@pytest.fixture(autouse=True)
def restore_logging_and_signals():
    """configure_logging() and SignalRelay.install() touch process-wide state."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    previous = {signum: signal.getsignal(signum) for signum in HANDLED_SIGNALS}
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
    for signum, handler in previous.items():
        signal.signal(signum, handler if handler is not None else signal.SIG_DFL)


@pytest.fixture
def config(tmp_path: Path) -> DaemonConfig:
    """Fast-ticking config with pid and log dirs under tmp_path."""
    return DaemonConfig(
        process_name="test-daemon",
        sleep=0.05,
        admission_poll_interval=0.01,
        memory_limit=64 * 1024**3,
        pid_dir=str(tmp_path / "pids"),
        log_dir=str(tmp_path / "logs"),
    )
