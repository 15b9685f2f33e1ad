"""
Embedded V8 backend for scriptbench.

Runs the workload inside the current process through ``mini-racer``
(import name ``py_mini_racer``), which embeds a V8 isolate.  This is the
in-process engine variant: no IPC is involved, so measured durations are the
cost of the call itself.

``mini-racer`` is an *optional* dependency.  When it is not installed this
module imports cleanly and :meth:`V8Backend.is_available` returns ``False``.

Install guidance
----------------
    python -m pip install -e .[v8]
"""

from __future__ import annotations

import importlib.util
import time
from typing import Any

from ..errors import InvocationError, InvocationTimeoutError, LoadError
from .base import LoadedProgram, ScriptBackend, Workload, register_backend

_V8_INSTALL_HINT = (
    "mini-racer is not installed.  Install it with:\n"
    "    python -m pip install -e .[v8]\n"
    "Or install it directly with:\n"
    '    python -m pip install "mini-racer"'
)


def _mini_racer_available() -> bool:
    """Return ``True`` when ``py_mini_racer`` is importable (no isolate created)."""
    return importlib.util.find_spec("py_mini_racer") is not None


@register_backend("v8")
class V8Backend(ScriptBackend):
    """Runs workloads in an embedded V8 isolate.

    Options
    -------
    - ``max_memory`` (int, optional): heap limit in bytes passed to every
      ``eval``/``call``.
    """

    description = "in-process V8 via mini-racer"
    supports_invoke_timeout = True

    @property
    def backend_name(self) -> str:
        return "v8"

    def is_available(self) -> bool:
        return _mini_racer_available()

    def unavailable_reason(self) -> str:
        return _V8_INSTALL_HINT

    def _engine_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        if self.options.get("max_memory"):
            kwargs["max_memory"] = int(self.options["max_memory"])
        return kwargs

    def _create_engine(self) -> Any:
        from py_mini_racer import MiniRacer

        return MiniRacer()

    def _destroy_engine(self, engine: Any) -> None:
        # Older mini-racer releases free the isolate on garbage collection only.
        if hasattr(engine, "close"):
            engine.close()

    def _load(self, engine: Any, workload: Workload) -> Any:
        kwargs = self._engine_kwargs()
        for name, text in workload.sources():
            try:
                engine.eval(text, **kwargs)
            except Exception as exc:  # noqa: BLE001
                raise LoadError(self.backend_name, f"{name}: {exc}") from exc

        try:
            kind = engine.eval(f"typeof {workload.entry_point}")
        except Exception as exc:  # noqa: BLE001
            raise LoadError(self.backend_name, f"cannot resolve entry point: {exc}") from exc
        if kind != "function":
            raise LoadError(
                self.backend_name,
                f"entry point '{workload.entry_point}' is {kind}, expected function",
            )
        return workload.entry_point

    def _invoke(self, engine: Any, program: LoadedProgram, timeout_s: float | None) -> float:
        from py_mini_racer import JSTimeoutException

        kwargs = self._engine_kwargs()
        if timeout_s is not None:
            # mini-racer terminates the isolate's execution when this expires.
            kwargs["timeout_sec"] = timeout_s
        start = time.perf_counter()
        try:
            engine.call(program.handle, **kwargs)
        except JSTimeoutException as exc:
            raise InvocationTimeoutError(self.backend_name, timeout_s or 0.0) from exc
        except Exception as exc:  # noqa: BLE001
            raise InvocationError(self.backend_name, str(exc)) from exc
        return (time.perf_counter() - start) * 1000.0
