"""Tests for result rendering in scriptbench/reporter.py."""

from __future__ import annotations

from scriptbench.reporter import format_report, format_result, format_summary
from scriptbench.runner import BenchmarkResult, RunPhase, RunStatus


def _completed(**overrides) -> BenchmarkResult:
    values = dict(
        backend_name="v8",
        workload="compile-ts",
        status=RunStatus.COMPLETED,
        measured_iterations=4,
        warmup_count=15,
        iteration_durations=(5.2, 3.4, 8.0, 1.4),
        description="in-process V8 via mini-racer",
    )
    values.update(overrides)
    return BenchmarkResult(**values)


def test_completed_result_lists_each_iteration():
    text = format_result(_completed())
    lines = text.splitlines()

    assert lines[0] == "=== v8 (in-process V8 via mini-racer) ==="
    assert lines[1] == "warmup: 15 iterations"
    assert [line for line in lines if line.startswith("iteration:")] == [
        "iteration: 5",
        "iteration: 3",
        "iteration: 8",
        "iteration: 1",
    ]
    assert "total: 18 ms over 4/4 iterations" in lines
    assert any(line.startswith("mean: 4.5 ms") for line in lines)


def test_unavailable_result_prints_marker_and_reason():
    result = BenchmarkResult(
        backend_name="duktape",
        workload="compile-ts",
        status=RunStatus.UNAVAILABLE,
        measured_iterations=10,
        error="dukpy is not installed.",
    )
    text = format_result(result)
    assert "*** duktape not available ***" in text
    assert "    dukpy is not installed." in text
    assert "iteration:" not in text


def test_failed_result_names_phase():
    result = BenchmarkResult(
        backend_name="node",
        workload="compile-ts",
        status=RunStatus.FAILED,
        measured_iterations=10,
        error="Backend 'node' failed to load workload: SyntaxError",
        failed_phase=RunPhase.LOADING,
    )
    text = format_result(result)
    assert "*** node failed during loading:" in text
    assert "total:" not in text


def test_partial_result_keeps_durations_and_marks_stop():
    result = _completed(
        status=RunStatus.PARTIAL,
        iteration_durations=(4.0, 6.0),
        error="[v8] invoking: RangeError",
        failed_phase=RunPhase.MEASURING,
        warmup_failures=2,
    )
    text = format_result(result)
    assert "warmup: 15 iterations (2 failed)" in text
    assert "total: 10 ms over 2/4 iterations" in text
    assert "*** stopped during measuring after 2 iterations: [v8] invoking: RangeError ***" in text


def test_summary_table_has_one_row_per_backend():
    unavailable = BenchmarkResult(
        backend_name="duktape", workload="compile-ts", status=RunStatus.UNAVAILABLE, measured_iterations=4
    )
    table = format_summary([_completed(), unavailable]).splitlines()

    assert table[0].split() == ["backend", "status", "iterations", "total", "ms", "mean", "ms"]
    assert set(table[1]) <= {"-", " "}
    assert table[2].split()[:4] == ["v8", "completed", "4/4", "18.0"]
    assert table[3].split() == ["duktape", "unavailable", "0/4", "n/a", "n/a"]


def test_report_includes_title_blocks_and_summary():
    text = format_report([_completed(), _completed(backend_name="node", description="")], title="Session")
    assert text.splitlines()[1] == "Session"
    assert "=== node ===" in text
    assert "Summary" in text
