# jobdaemon/background/hooks.py
"""Observer hook points fired by the supervisor loop and forked workers."""

import logging
from collections.abc import Callable
from enum import Enum

logger = logging.getLogger(__name__)


class LifecycleEvent(Enum):
    """Hook points around iterations and jobs."""

    BEFORE_ITERATION = "before_iteration"
    AFTER_ITERATION = "after_iteration"
    BEFORE_JOB = "before_job"
    AFTER_JOB = "after_job"


class HookRegistry:
    """
    Callbacks registered per lifecycle event.

    Hooks are pure notifications: an exception raised by a callback is
    logged and the remaining callbacks still run.
    """

    def __init__(self) -> None:
        self._callbacks: dict[LifecycleEvent, list[Callable[[], None]]] = {
            event: [] for event in LifecycleEvent
        }

    def register(self, event: LifecycleEvent, callback: Callable[[], None]) -> None:
        """Add a callback for an event."""
        self._callbacks[event].append(callback)

    def unregister(self, event: LifecycleEvent, callback: Callable[[], None]) -> None:
        """Remove a previously registered callback (no-op if absent)."""
        try:
            self._callbacks[event].remove(callback)
        except ValueError:
            pass

    def trigger(self, event: LifecycleEvent) -> None:
        """Call every callback registered for the event, in registration order."""
        for callback in list(self._callbacks[event]):
            try:
                callback()
            except Exception:
                logger.exception(f"Hook {callback!r} failed on {event.value}")
