"""
Legacy Duktape backend for scriptbench.

Runs the workload in the Duktape interpreter through ``dukpy``.  Duktape
only implements ECMAScript 5.1, so modern compiler bundles are expected to
be rejected at load time; the backend exists so that legacy-engine numbers
(or their absence) are reported alongside the modern engines.

``evaljs`` holds the GIL for the whole call, so a running script cannot be
stopped from Python: the backend does not support ``invoke_timeout_s`` and
the runner rejects it when a timeout is configured.

``dukpy`` is an *optional* dependency:

    python -m pip install -e .[duktape]
"""

from __future__ import annotations

import importlib.util
import time
from typing import Any

from ..errors import InvocationError, LoadError
from .base import LoadedProgram, ScriptBackend, Workload, register_backend

_DUKTAPE_INSTALL_HINT = (
    "dukpy is not installed.  Install it with:\n"
    "    python -m pip install -e .[duktape]"
)


def _dukpy_available() -> bool:
    return importlib.util.find_spec("dukpy") is not None


@register_backend("duktape")
class DuktapeBackend(ScriptBackend):
    """Runs workloads in a ``dukpy.JSInterpreter`` (ES5 only)."""

    description = "legacy Duktape interpreter via dukpy"

    @property
    def backend_name(self) -> str:
        return "duktape"

    def is_available(self) -> bool:
        return _dukpy_available()

    def unavailable_reason(self) -> str:
        return _DUKTAPE_INSTALL_HINT

    def _create_engine(self) -> Any:
        import dukpy

        return dukpy.JSInterpreter()

    def _load(self, engine: Any, workload: Workload) -> Any:
        for name, text in workload.sources():
            try:
                engine.evaljs(text)
            except Exception as exc:  # noqa: BLE001
                raise LoadError(self.backend_name, f"{name}: {exc}") from exc

        try:
            kind = engine.evaljs(f"typeof {workload.entry_point}")
        except Exception as exc:  # noqa: BLE001
            raise LoadError(self.backend_name, f"cannot resolve entry point: {exc}") from exc
        if kind != "function":
            raise LoadError(
                self.backend_name,
                f"entry point '{workload.entry_point}' is {kind}, expected function",
            )
        return f"{workload.entry_point}()"

    def _invoke(self, engine: Any, program: LoadedProgram, timeout_s: float | None) -> float:
        start = time.perf_counter()
        try:
            engine.evaljs(program.handle)
        except Exception as exc:  # noqa: BLE001
            raise InvocationError(self.backend_name, str(exc)) from exc
        return (time.perf_counter() - start) * 1000.0
