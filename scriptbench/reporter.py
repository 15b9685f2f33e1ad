"""
Rendering of benchmark results.

Everything here is a pure function of :class:`~scriptbench.runner.BenchmarkResult`
values: no backend is touched and nothing is printed.  The CLI decides where
the text goes.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from .common.metrics_schema import UnifiedMetricsRecord
from .runner import BenchmarkResult, RunStatus

_RULE = "=" * 60


def _ms(value: float | None) -> str:
    return "n/a" if value is None else f"{value:.1f}"


def format_header(result: BenchmarkResult) -> str:
    label = result.backend_name
    if result.description:
        label = f"{label} ({result.description})"
    return f"=== {label} ==="


def format_result(result: BenchmarkResult) -> str:
    """Render one backend's result block.

    Per measured iteration one ``iteration: <ms>`` line is emitted, rounded to
    whole milliseconds, followed by the total and summary statistics.
    """
    lines = [format_header(result)]

    if result.status is RunStatus.UNAVAILABLE:
        lines.append(f"*** {result.backend_name} not available ***")
        if result.error:
            lines.extend(f"    {line}" for line in result.error.splitlines())
        return "\n".join(lines)

    if result.status is RunStatus.FAILED:
        phase = result.failed_phase.value if result.failed_phase else "unknown phase"
        lines.append(f"*** {result.backend_name} failed during {phase}: {result.error} ***")
        return "\n".join(lines)

    warmup = f"warmup: {result.warmup_count} iterations"
    if result.warmup_failures:
        warmup += f" ({result.warmup_failures} failed)"
    lines.append(warmup)

    for took in result.iteration_durations:
        lines.append(f"iteration: {round(took)}")

    lines.append(
        f"total: {round(result.total_duration)} ms over "
        f"{len(result.iteration_durations)}/{result.measured_iterations} iterations"
    )
    if result.iteration_durations:
        lines.append(
            f"mean: {_ms(result.mean_duration)} ms  "
            f"p50: {_ms(result.percentile(50))} ms  "
            f"p95: {_ms(result.percentile(95))} ms"
        )

    if result.status is RunStatus.PARTIAL:
        phase = result.failed_phase.value if result.failed_phase else "measuring"
        lines.append(
            f"*** stopped during {phase} after {len(result.iteration_durations)} "
            f"iterations: {result.error} ***"
        )
    return "\n".join(lines)


def format_summary(results: Iterable[BenchmarkResult]) -> str:
    """Render a one-line-per-backend summary table."""
    rows = [("backend", "status", "iterations", "total ms", "mean ms")]
    for result in results:
        rows.append(
            (
                result.backend_name,
                result.status.value,
                f"{len(result.iteration_durations)}/{result.measured_iterations}",
                f"{result.total_duration:.1f}" if result.available else "n/a",
                _ms(result.mean_duration),
            )
        )
    widths = [max(len(row[i]) for row in rows) for i in range(len(rows[0]))]
    rendered = ["  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip() for row in rows]
    rendered.insert(1, "  ".join("-" * width for width in widths))
    return "\n".join(rendered)


def format_report(results: Iterable[BenchmarkResult], title: str | None = None) -> str:
    """Render every result block followed by the summary table."""
    results = list(results)
    parts: list[str] = []
    if title:
        parts.extend([_RULE, title, _RULE])
    parts.extend(format_result(result) for result in results)
    parts.extend(["", "Summary", format_summary(results)])
    return "\n".join(parts)


def build_metrics_record(
    result: BenchmarkResult,
    *,
    run_id: str,
    config_hash: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Convert *result* into a unified metrics record dict."""
    durations = list(result.iteration_durations)
    record = UnifiedMetricsRecord(
        backend=result.backend_name,
        workload=result.workload,
        run_id=run_id,
        status=result.status.value,
        warmup_iterations=result.warmup_count,
        measured_iterations=result.measured_iterations,
        completed_iterations=len(durations),
        latency_mean=result.mean_duration,
        latency_p50=result.percentile(50),
        latency_p95=result.percentile(95),
        latency_min=min(durations) if durations else None,
        latency_max=max(durations) if durations else None,
        total_ms=result.total_duration if result.available else None,
        config_hash=config_hash,
        error=result.error,
        durations_ms=durations,
        metadata=dict(metadata or {}),
    )
    if result.failed_phase is not None:
        record.metadata.setdefault("failed_phase", result.failed_phase.value)
    return record.to_dict()
