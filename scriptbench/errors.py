"""
Exception hierarchy for scriptbench.

Backend unavailability is deliberately *not* represented here: a missing
engine is reported through :meth:`ScriptBackend.is_available` and ends up as
an ``unavailable`` result.
"""

from __future__ import annotations


class ScriptBenchError(Exception):
    """Base class for all scriptbench errors."""


class ResourceNotFoundError(ScriptBenchError):
    """A named text asset could not be found in any search location."""

    def __init__(self, name: str, searched: list[str] | None = None):
        self.name = name
        self.searched = list(searched or [])
        locations = ", ".join(self.searched) or "(no search locations)"
        super().__init__(f"Resource '{name}' not found. Searched: {locations}")


class BackendError(ScriptBenchError):
    """Error raised by a backend, tagged with backend name and protocol phase."""

    def __init__(self, backend: str, phase: str, message: str):
        self.backend = backend
        self.phase = phase
        self.message = message
        super().__init__(f"[{backend}] {phase}: {message}")


class LoadError(BackendError):
    """The workload could not be evaluated by the backend's engine."""

    def __init__(self, backend: str, message: str):
        super().__init__(backend, "loading", message)


class InvocationError(BackendError):
    """A single invocation of the workload entry point failed."""

    def __init__(self, backend: str, message: str, phase: str = "invoking"):
        super().__init__(backend, phase, message)


class InvocationTimeoutError(InvocationError):
    """An invocation did not return within the configured timeout."""

    def __init__(self, backend: str, timeout_s: float, phase: str = "invoking"):
        self.timeout_s = timeout_s
        super().__init__(backend, f"no response within {timeout_s:.3f}s", phase=phase)


class BenchmarkLoadError(ScriptBenchError):
    """Raised by the runner when a backend fails to load the workload."""

    def __init__(self, backend: str, cause: LoadError):
        self.backend = backend
        self.cause = cause
        super().__init__(f"Backend '{backend}' failed to load workload: {cause.message}")
