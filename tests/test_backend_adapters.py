"""Tests for the bundled engine adapters.

Availability is checked without the engines installed; the real-engine tests
are skipped unless mini-racer, dukpy or a ``node`` binary is present.
"""

from __future__ import annotations

import shutil
import threading
import time

import pytest

from scriptbench.backends import duktape_backend, node_backend, v8_backend
from scriptbench.backends.base import Workload, resolve_backend
from scriptbench.errors import BenchmarkLoadError, InvocationError, LoadError
from scriptbench.runner import BenchmarkRunner, RunConfig, RunPhase, RunStatus

ES5_WORKLOAD = Workload(
    name="es5",
    source_text="function compileTypescript() { return helper(20); }",
    entry_point="compileTypescript",
    auxiliary_sources=("function helper(n) { var s = 0; for (var i = 0; i < n; i++) { s += i; } return s; }",),
    auxiliary_names=("helper.js",),
)

BROKEN_WORKLOAD = Workload(name="broken", source_text="function (", entry_point="compileTypescript")

NO_ENTRY_WORKLOAD = Workload(name="no-entry", source_text="var compileTypescript = 3;", entry_point="compileTypescript")

THROWING_WORKLOAD = Workload(
    name="throws",
    source_text="function compileTypescript() { throw new Error('compile failed'); }",
    entry_point="compileTypescript",
)

SPINNING_WORKLOAD = Workload(
    name="spins",
    source_text="function compileTypescript() { while (true) {} }",
    entry_point="compileTypescript",
)


# ---------------------------------------------------------------------------
# Availability (no engine needed)
# ---------------------------------------------------------------------------


def test_v8_unavailable_without_mini_racer(monkeypatch):
    monkeypatch.setattr(v8_backend, "_mini_racer_available", lambda: False)
    backend = resolve_backend("v8")
    assert not backend.is_available()
    assert "mini-racer" in backend.unavailable_reason()


def test_duktape_unavailable_without_dukpy(monkeypatch):
    monkeypatch.setattr(duktape_backend, "_dukpy_available", lambda: False)
    backend = resolve_backend("duktape")
    assert not backend.is_available()
    assert "dukpy" in backend.unavailable_reason()


def test_node_unavailable_for_missing_executable(workload):
    backend = resolve_backend("node", executable="definitely-not-node-xyz")
    assert not backend.is_available()
    assert "definitely-not-node-xyz" in backend.unavailable_reason()

    result = BenchmarkRunner().run(backend, workload)
    assert result.status is RunStatus.UNAVAILABLE


def test_node_driver_script_is_bundled():
    assert node_backend.DRIVER_SCRIPT.is_file()


# ---------------------------------------------------------------------------
# Shared engine behaviour
# ---------------------------------------------------------------------------


def _engine_params():
    params = []
    params.append(
        pytest.param(
            "v8",
            {},
            marks=pytest.mark.skipif(not v8_backend._mini_racer_available(), reason="mini-racer not installed"),
        )
    )
    params.append(
        pytest.param(
            "duktape",
            {},
            marks=pytest.mark.skipif(not duktape_backend._dukpy_available(), reason="dukpy not installed"),
        )
    )
    params.append(
        pytest.param(
            "node",
            {"shutdown_timeout_s": 2.0},
            marks=pytest.mark.skipif(shutil.which("node") is None, reason="node not on PATH"),
        )
    )
    return params


@pytest.mark.parametrize(("name", "options"), _engine_params())
def test_engine_runs_workload(name, options):
    backend = resolve_backend(name, **options)
    result = BenchmarkRunner(RunConfig(warmup_iterations=2, measured_iterations=3)).run(backend, ES5_WORKLOAD)

    assert result.status is RunStatus.COMPLETED
    assert len(result.iteration_durations) == 3
    assert all(d >= 0 for d in result.iteration_durations)
    assert not backend.is_acquired


@pytest.mark.parametrize(("name", "options"), _engine_params())
def test_engine_rejects_syntax_error(name, options):
    with resolve_backend(name, **options) as backend:
        with pytest.raises(LoadError):
            backend.load(BROKEN_WORKLOAD)


@pytest.mark.parametrize(("name", "options"), _engine_params())
def test_engine_rejects_non_function_entry(name, options):
    with resolve_backend(name, **options) as backend:
        with pytest.raises(LoadError):
            backend.load(NO_ENTRY_WORKLOAD)


@pytest.mark.parametrize(("name", "options"), _engine_params())
def test_engine_reports_invocation_error(name, options):
    with resolve_backend(name, **options) as backend:
        program = backend.load(THROWING_WORKLOAD)
        with pytest.raises(InvocationError, match="compile failed"):
            backend.invoke(program)


@pytest.mark.parametrize(("name", "options"), _engine_params())
def test_engine_is_fresh_after_reacquire(name, options):
    backend = resolve_backend(name, **options)
    with backend:
        backend.load(ES5_WORKLOAD)
    with backend:
        with pytest.raises(LoadError):
            backend.load(Workload(name="helper-check", source_text="var x = 1;", entry_point="helper"))


@pytest.mark.parametrize(("name", "options"), _engine_params())
def test_engine_rejects_invalid_entry_point_name(name, options):
    bad_entry = Workload(name="bad-entry", source_text="var x = 1;", entry_point="not a-name")
    with resolve_backend(name, **options) as backend:
        with pytest.raises(LoadError):
            backend.load(bad_entry)


# ---------------------------------------------------------------------------
# Invocation timeouts
# ---------------------------------------------------------------------------


def _interruptible_params():
    return [p for p in _engine_params() if p.values[0] != "duktape"]


@pytest.mark.parametrize(("name", "options"), _interruptible_params())
def test_engine_stops_call_that_overruns_timeout(name, options):
    cfg = RunConfig(warmup_iterations=1, measured_iterations=1, invoke_timeout_s=0.3)
    backend = resolve_backend(name, **options)

    start = time.perf_counter()
    result = BenchmarkRunner(cfg).run(backend, SPINNING_WORKLOAD)
    elapsed = time.perf_counter() - start

    assert result.status is RunStatus.PARTIAL
    assert result.failed_phase is RunPhase.WARMING_UP
    assert result.warmup_count == 1
    assert "no response within" in result.error
    assert elapsed < 10
    assert not backend.is_acquired
    assert [t for t in threading.enumerate() if t.name == "scriptbench-guard"] == []


def test_duktape_rejects_timeout_before_starting_engine(monkeypatch):
    monkeypatch.setattr(duktape_backend, "_dukpy_available", lambda: True)
    backend = resolve_backend("duktape")
    assert backend.supports_invoke_timeout is False

    cfg = RunConfig(warmup_iterations=1, measured_iterations=1, invoke_timeout_s=0.3)
    with pytest.raises(BenchmarkLoadError, match="cannot be enforced"):
        BenchmarkRunner(cfg).run(backend, SPINNING_WORKLOAD)
    assert not backend.is_acquired

    result = BenchmarkRunner(cfg).run_session([backend], SPINNING_WORKLOAD)[0]
    assert result.status is RunStatus.FAILED
    assert result.failed_phase is RunPhase.LOADING
