# jobdaemon/background/__init__.py
"""
Process supervision: loop, fork dispatcher, signal relay and pid registry.

Exports:
    - SupervisorLoop: Iteration loop with pool admission control
    - WorkerDispatcher: In-process or forked job execution
    - SignalRelay: Deferred signal handling and child reaping
    - ProcessRegistry: Pid file, uptime and memory watchdog
    - DaemonLifecycle: Startup and shutdown coordination
"""

from jobdaemon.background.dispatcher import WorkerDispatcher
from jobdaemon.background.hooks import HookRegistry, LifecycleEvent
from jobdaemon.background.lifecycle import DaemonLifecycle
from jobdaemon.background.memory import MemoryMonitor
from jobdaemon.background.registry import PidFile, ProcessRegistry, format_uptime
from jobdaemon.background.signals import SignalRelay
from jobdaemon.background.state import ChildProcess, SupervisorState
from jobdaemon.background.worker import SupervisorLoop

__all__ = [
    "ChildProcess",
    "DaemonLifecycle",
    "HookRegistry",
    "LifecycleEvent",
    "MemoryMonitor",
    "PidFile",
    "ProcessRegistry",
    "SignalRelay",
    "SupervisorLoop",
    "SupervisorState",
    "WorkerDispatcher",
    "format_uptime",
]
