# jobdaemon/__init__.py
"""
jobdaemon: run a job processor forever, safely.

Subclass Daemon, implement list_pending() and run(), and start it with
``jobdaemon run package.module:MyDaemon``.
"""

from jobdaemon.background.hooks import LifecycleEvent
from jobdaemon.config.schema import DaemonConfig
from jobdaemon.connections import ConnectionManager, ConnectionRegistry
from jobdaemon.daemon import Daemon, JobExecutor, JobSource
from jobdaemon.errors import ExitCode

__version__ = "0.1.0"

__all__ = [
    "ConnectionManager",
    "ConnectionRegistry",
    "Daemon",
    "DaemonConfig",
    "ExitCode",
    "JobExecutor",
    "JobSource",
    "LifecycleEvent",
]
