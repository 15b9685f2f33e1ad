"""Tests for scriptbench/common/execution_guard.py."""

from __future__ import annotations

import threading

import pytest

from scriptbench.common.execution_guard import call_with_timeout, run_bounded


class _Timeout(Exception):
    pass


def _never_stop() -> None:
    raise AssertionError("stop must not be called")


def _guard_threads() -> list[threading.Thread]:
    return [t for t in threading.enumerate() if t.name == "scriptbench-guard"]


def test_run_bounded_returns_value():
    result = run_bounded(lambda: 42, 1.0, _never_stop)
    assert result.completed
    assert not result.timed_out
    assert result.value == 42
    assert result.error is None


def test_run_bounded_captures_error():
    def fail():
        raise RuntimeError("nope")

    result = run_bounded(fail, 1.0, _never_stop)
    assert not result.completed
    assert isinstance(result.error, RuntimeError)


def test_run_bounded_stops_overrunning_work():
    released = threading.Event()

    result = run_bounded(lambda: released.wait(10), 0.05, released.set)

    assert result.timed_out
    assert not result.completed
    assert result.elapsed_seconds >= 0.05
    assert released.is_set()
    assert _guard_threads() == []


def test_call_with_timeout_none_runs_on_current_thread():
    caller = threading.current_thread()
    assert call_with_timeout(threading.current_thread, None, _never_stop, _Timeout) is caller


def test_call_with_timeout_raises_factory_exception_after_stop():
    released = threading.Event()

    with pytest.raises(_Timeout) as excinfo:
        call_with_timeout(lambda: released.wait(10), 0.05, released.set, lambda t: _Timeout(t))

    assert excinfo.value.args == (0.05,)
    assert released.is_set()
    assert _guard_threads() == []


def test_call_with_timeout_propagates_errors():
    def fail():
        raise KeyError("k")

    with pytest.raises(KeyError):
        call_with_timeout(fail, 1.0, _never_stop, _Timeout)
