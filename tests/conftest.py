"""Pytest configuration for scriptbench tests."""

from __future__ import annotations

import sys
import time
from pathlib import Path
from typing import Any

import pytest

# Make the scriptbench package importable without installing it.
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

import scriptbench.backends.base as backend_base  # noqa: E402
from scriptbench.backends.base import (  # noqa: E402
    LoadedProgram,
    ScriptBackend,
    Workload,
    load_all_backends,
)
from scriptbench.errors import InvocationError, InvocationTimeoutError, LoadError  # noqa: E402

# Register the bundled adapters before any test snapshots the registry.
load_all_backends()


class StubBackend(ScriptBackend):
    """Scriptable backend that records every call it receives.

    ``durations`` is indexed by the 1-based invocation number across warmup
    and measurement (cycled when exhausted); ``fail_calls`` lists invocation
    numbers that raise :class:`InvocationError`; ``hang_calls`` lists
    invocation numbers that sleep for ``hang_seconds`` first, or until the
    invocation timeout, which the stub enforces like a real engine would.
    """

    description = "stub engine"
    supports_invoke_timeout = True

    def __init__(
        self,
        name: str = "stub",
        *,
        available: bool = True,
        durations: list[float] | None = None,
        load_error: str | None = None,
        fail_calls: tuple[int, ...] = (),
        hang_calls: tuple[int, ...] = (),
        hang_seconds: float = 0.5,
        **options: Any,
    ):
        super().__init__(**options)
        self._name = name
        self.available = available
        self.durations = list(durations or [1.0])
        self.load_error = load_error
        self.fail_calls = set(fail_calls)
        self.hang_calls = set(hang_calls)
        self.hang_seconds = hang_seconds
        self.events: list[str] = []
        self.load_count = 0
        self.invoke_count = 0
        self.availability_checks = 0

    @property
    def backend_name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        self.availability_checks += 1
        return self.available

    def _create_engine(self) -> Any:
        self.events.append("acquire")
        return object()

    def _destroy_engine(self, engine: Any) -> None:
        self.events.append("release")

    def _load(self, engine: Any, workload: Workload) -> Any:
        self.load_count += 1
        self.events.append("load")
        if self.load_error:
            raise LoadError(self._name, self.load_error)
        return workload.entry_point

    def _invoke(self, engine: Any, program: LoadedProgram, timeout_s: float | None) -> float:
        self.invoke_count += 1
        call = self.invoke_count
        self.events.append(f"invoke:{call}")
        if call in self.hang_calls:
            if timeout_s is not None and timeout_s < self.hang_seconds:
                time.sleep(timeout_s)
                raise InvocationTimeoutError(self._name, timeout_s)
            time.sleep(self.hang_seconds)
        if call in self.fail_calls:
            raise InvocationError(self._name, f"boom at call {call}")
        return float(self.durations[(call - 1) % len(self.durations)])


def make_stub_class(name: str, **stub_kwargs: Any) -> type[StubBackend]:
    """Return a StubBackend subclass the registry can instantiate with options only."""

    class RegisteredStub(StubBackend):
        def __init__(self, **options: Any):
            super().__init__(name, **stub_kwargs, **options)

    RegisteredStub.__qualname__ = f"RegisteredStub_{name}"
    return RegisteredStub


@pytest.fixture
def workload() -> Workload:
    return Workload(
        name="unit",
        source_text="function compileTypescript() { return lib() + 1; }",
        entry_point="compileTypescript",
        auxiliary_sources=("function lib() { return 41; }",),
        auxiliary_names=("lib.js",),
        source_name="entry.js",
    )


@pytest.fixture
def isolated_registry():
    """Snapshot and restore the backend registry around a test."""
    original = dict(backend_base._REGISTRY)
    yield backend_base._REGISTRY
    backend_base._REGISTRY.clear()
    backend_base._REGISTRY.update(original)


@pytest.fixture
def asset_dir(tmp_path: Path) -> Path:
    """Directory holding stand-ins for the user-supplied compiler assets."""
    directory = tmp_path / "assets"
    directory.mkdir()
    (directory / "typescript.js").write_text("var ts = {};\n", encoding="utf-8")
    (directory / "libPack.js").write_text(
        "function getLibFileContent(name) { return ''; }\n", encoding="utf-8"
    )
    return directory
