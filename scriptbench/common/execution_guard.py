"""Execution guard helpers for backend invocations."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

T = TypeVar("T")


@dataclass
class ExecutionGuardResult:
    completed: bool
    timed_out: bool
    elapsed_seconds: float
    value: Any = None
    error: BaseException | None = None


def run_bounded(
    fn: Callable[[], T],
    timeout_seconds: float,
    stop: Callable[[], None],
    stop_grace_seconds: float = 5.0,
) -> ExecutionGuardResult:
    """Run *fn* on a worker thread; call *stop* if it overruns *timeout_seconds*.

    *stop* must make *fn* return (e.g. kill the engine process *fn* is
    blocked on).  The worker is joined again for at most
    *stop_grace_seconds* after stopping.
    """
    outcome: dict[str, Any] = {}

    def _target() -> None:
        try:
            outcome["value"] = fn()
        except BaseException as exc:  # noqa: BLE001
            outcome["error"] = exc

    start_time = time.perf_counter()
    worker = threading.Thread(target=_target, name="scriptbench-guard", daemon=True)
    worker.start()
    worker.join(timeout_seconds)

    if worker.is_alive():
        stop()
        worker.join(stop_grace_seconds)
        elapsed = time.perf_counter() - start_time
        return ExecutionGuardResult(completed=False, timed_out=True, elapsed_seconds=elapsed)

    elapsed = time.perf_counter() - start_time
    return ExecutionGuardResult(
        completed="error" not in outcome,
        timed_out=False,
        elapsed_seconds=elapsed,
        value=outcome.get("value"),
        error=outcome.get("error"),
    )


def call_with_timeout(
    fn: Callable[[], T],
    timeout_seconds: float | None,
    stop: Callable[[], None],
    on_timeout: Callable[[float], BaseException],
) -> T:
    """Return ``fn()``; on overrun call *stop* and raise ``on_timeout(timeout_seconds)``.

    With ``timeout_seconds=None`` *fn* is called directly on the current
    thread.  Exceptions raised by *fn* propagate unchanged.
    """
    if timeout_seconds is None:
        return fn()
    result = run_bounded(fn, timeout_seconds, stop)
    if result.timed_out:
        raise on_timeout(timeout_seconds)
    if result.error is not None:
        raise result.error
    return result.value
