# tests/unit/test_dispatcher.py
"""
Tests for the worker dispatcher.

Tests cover:
    - In-process execution and hook order
    - Fire-and-forget fork in multi-instance mode (parent branch)
    - Child branch: connection renewal, hooks, exit status
    - Fork failure handling
    - Real forked children reporting through their exit status
"""

import os
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from jobdaemon.background.dispatcher import WorkerDispatcher
from jobdaemon.background.hooks import HookRegistry, LifecycleEvent
from jobdaemon.background.state import SupervisorState
from jobdaemon.daemon import JobExecutor


class RecordingExecutor(JobExecutor):
    def __init__(self, results=None, events=None):
        self.results = results or {}
        self.events = events if events is not None else []

    def run(self, job):
        self.events.append(f"run:{job}")
        result = self.results.get(job, True)
        if isinstance(result, Exception):
            raise result
        return result


class ExitCalled(BaseException):
    def __init__(self, code):
        super().__init__(code)
        self.code = code


def _fake_exit(code):
    raise ExitCalled(code)


@pytest.fixture
def state() -> SupervisorState:
    return SupervisorState(process_name="test-daemon")


def _hooks_recording(events: list) -> HookRegistry:
    hooks = HookRegistry()
    hooks.register(LifecycleEvent.BEFORE_JOB, lambda: events.append("before_job"))
    hooks.register(LifecycleEvent.AFTER_JOB, lambda: events.append("after_job"))
    return hooks


class TestInProcess:
    def test_returns_job_result(self, state):
        executor = RecordingExecutor(results={"bad": False})
        dispatcher = WorkerDispatcher(executor, state, HookRegistry())

        assert dispatcher.dispatch("good") is True
        assert dispatcher.dispatch("bad") is False

    def test_hooks_wrap_job(self, state):
        events: list = []
        executor = RecordingExecutor(events=events)
        dispatcher = WorkerDispatcher(executor, state, _hooks_recording(events))

        dispatcher.dispatch("a")

        assert events == ["before_job", "run:a", "after_job"]

    def test_exception_counts_as_failure(self, state):
        executor = RecordingExecutor(results={"boom": RuntimeError("db gone")})
        dispatcher = WorkerDispatcher(executor, state, HookRegistry())

        assert dispatcher.dispatch("boom") is False

    def test_does_not_fork(self, state):
        dispatcher = WorkerDispatcher(RecordingExecutor(), state, HookRegistry())

        with patch("jobdaemon.background.dispatcher.os.fork") as mock_fork:
            dispatcher.dispatch("a")

        mock_fork.assert_not_called()


class TestForkParent:
    def test_registers_child_and_returns_true(self, state):
        executor = RecordingExecutor()
        dispatcher = WorkerDispatcher(executor, state, HookRegistry(), multi_instance=True)

        with patch("jobdaemon.background.dispatcher.os.fork", return_value=4242):
            assert dispatcher.dispatch("a") is True

        assert list(state.active_children) == [4242]
        assert state.active_children[4242].job == "'a'"
        assert executor.events == []

    def test_flushes_logs_before_fork(self, state):
        dispatcher = WorkerDispatcher(RecordingExecutor(), state, HookRegistry(), multi_instance=True)
        order: list = []

        with patch(
            "jobdaemon.background.dispatcher.flush_logs",
            side_effect=lambda: order.append("flush"),
        ), patch(
            "jobdaemon.background.dispatcher.os.fork",
            side_effect=lambda: order.append("fork") or 4242,
        ):
            dispatcher.dispatch("a")

        assert order == ["flush", "fork"]

    def test_fork_failure_returns_false(self, state):
        dispatcher = WorkerDispatcher(RecordingExecutor(), state, HookRegistry(), multi_instance=True)

        with patch(
            "jobdaemon.background.dispatcher.os.fork",
            side_effect=OSError(11, "Resource temporarily unavailable"),
        ):
            assert dispatcher.dispatch("a") is False

        assert state.active_children == {}


class TestForkChild:
    def _dispatch_in_fake_child(self, dispatcher, job):
        with patch("jobdaemon.background.dispatcher.os.fork", return_value=0), patch(
            "jobdaemon.background.dispatcher.os._exit", side_effect=_fake_exit
        ), patch("jobdaemon.background.dispatcher.discard_buffered_logs") as mock_discard:
            with pytest.raises(ExitCalled) as exc_info:
                dispatcher.dispatch(job)
        mock_discard.assert_called_once_with()
        return exc_info.value.code

    def test_child_runs_job_and_exits_zero(self, state):
        events: list = []
        renew = MagicMock(side_effect=lambda: events.append("renew"))
        after_fork = MagicMock(side_effect=lambda: events.append("after_fork"))
        dispatcher = WorkerDispatcher(
            RecordingExecutor(events=events),
            state,
            _hooks_recording(events),
            multi_instance=True,
            renew_connections=renew,
            after_fork=after_fork,
        )

        code = self._dispatch_in_fake_child(dispatcher, "a")

        assert code == 0
        assert events == ["after_fork", "renew", "before_job", "run:a", "after_job"]
        assert state.active_children == {}

    def test_child_exits_nonzero_on_failure(self, state):
        dispatcher = WorkerDispatcher(
            RecordingExecutor(results={"bad": False}), state, HookRegistry(), multi_instance=True
        )

        assert self._dispatch_in_fake_child(dispatcher, "bad") == 1

    def test_child_exits_nonzero_on_exception(self, state):
        dispatcher = WorkerDispatcher(
            RecordingExecutor(results={"boom": ValueError("bad input")}),
            state,
            HookRegistry(),
            multi_instance=True,
        )

        assert self._dispatch_in_fake_child(dispatcher, "boom") == 1

    def test_child_exits_nonzero_when_renew_fails(self, state):
        dispatcher = WorkerDispatcher(
            RecordingExecutor(),
            state,
            HookRegistry(),
            multi_instance=True,
            renew_connections=MagicMock(side_effect=ConnectionError("refused")),
        )

        assert self._dispatch_in_fake_child(dispatcher, "a") == 1


class FileWritingExecutor(JobExecutor):
    def __init__(self, directory: Path):
        self.directory = directory

    def run(self, job):
        (self.directory / job).write_text(str(os.getpid()))
        return job != "fail"


class TestRealFork:
    def test_children_report_through_exit_status(self, state, tmp_path: Path):
        dispatcher = WorkerDispatcher(
            FileWritingExecutor(tmp_path), state, HookRegistry(), multi_instance=True
        )

        assert dispatcher.dispatch("ok") is True
        assert dispatcher.dispatch("fail") is True

        codes = {}
        for pid, child in list(state.active_children.items()):
            _, status = os.waitpid(pid, 0)
            codes[child.job] = os.waitstatus_to_exitcode(status)

        assert codes == {"'ok'": 0, "'fail'": 1}
        assert (tmp_path / "ok").read_text() != str(os.getpid())
        assert (tmp_path / "fail").exists()
