"""Merge scriptbench result files into one backend comparison.

Each session directory contributes its ``results.jsonl``; a ``results.csv``
is read only where no JSONL sits beside it.  The report ranks the measured
backends of every workload by mean compile latency, relative to the fastest
engine, lists runs that produced no measurements, and flags sessions whose
backends were measured with different settings.

    scriptbench-compare results/ other-host/results/ -o artifacts/comparison
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any

import matplotlib.pyplot as plt
import pandas as pd

from ..common.metrics_schema import normalize_metrics_record
from ..common.result_writer import CSV_FIELD_ORDER, CSV_FILENAME, JSONL_FILENAME, read_jsonl_records

MEASURED_STATUSES = ("completed", "partial")
SETTING_COLUMNS = ("warmup_iterations", "measured_iterations", "config_hash")
LABEL_COLUMNS = ("backend", "workload", "run_id", "status")
NUMERIC_COLUMNS = tuple(
    name for name in CSV_FIELD_ORDER if name.startswith("latency_") or name.endswith(("_iterations", "_ms"))
)


def discover_result_files(input_paths: list[Path]) -> list[Path]:
    """Return one result file per session directory found under *input_paths*."""
    by_directory: dict[Path, Path] = {}

    for raw_path in input_paths:
        path = raw_path.expanduser().resolve()
        if not path.exists():
            raise FileNotFoundError(f"Input path does not exist: {path}")
        if path.is_file():
            candidates = [path]
        else:
            candidates = [*path.rglob(JSONL_FILENAME), *path.rglob(CSV_FILENAME)]

        for candidate in candidates:
            if candidate.name not in (JSONL_FILENAME, CSV_FILENAME) or not candidate.is_file():
                continue
            chosen = by_directory.get(candidate.parent)
            # The CSV is an export of the JSONL next to it.
            if chosen is None or candidate.name == JSONL_FILENAME:
                by_directory[candidate.parent] = candidate.resolve()

    return sorted(by_directory.values())


def _read_records(path: Path) -> list[dict[str, Any]]:
    if path.name == JSONL_FILENAME:
        return read_jsonl_records(path)
    return [normalize_metrics_record(row) for row in pd.read_csv(path).to_dict(orient="records")]


def load_normalized_records(result_files: list[Path]) -> pd.DataFrame:
    """Load result files into one frame, one row per backend run.

    Per-call durations and metadata are dropped; ``source_file`` names the
    file each row came from.
    """
    frames = []
    for path in result_files:
        records = _read_records(path)
        if records:
            frame = pd.DataFrame(records).drop(columns=["durations_ms", "metadata"])
            frames.append(frame.assign(source_file=str(path)))

    if not frames:
        return pd.DataFrame()

    df = pd.concat(frames, ignore_index=True)
    numeric = list(NUMERIC_COLUMNS)
    df[numeric] = df[numeric].apply(pd.to_numeric, errors="coerce")
    labels = list(LABEL_COLUMNS)
    df[labels] = df[labels].fillna("unknown").astype(str)
    return df


def _count(value: Any) -> str:
    return "n/a" if pd.isna(value) else f"{float(value):g}"


def detect_config_mismatches(df: pd.DataFrame) -> pd.DataFrame:
    """Return sessions (workload, run_id) whose backends disagree on settings."""
    columns = ["workload", "run_id", "backends", "detail"]
    if df.empty:
        return pd.DataFrame(columns=columns)

    settings = list(SETTING_COLUMNS)
    flagged = []
    for (workload, run_id), session in df.groupby(["workload", "run_id"]):
        if session["backend"].nunique() < 2 or len(session.drop_duplicates(subset=settings)) < 2:
            continue
        per_backend = session.drop_duplicates(subset=["backend", *settings])
        detail = "; ".join(
            f"{row['backend']}: warmup={_count(row['warmup_iterations'])}, "
            f"measured={_count(row['measured_iterations'])}, config_hash={row['config_hash']}"
            for _, row in per_backend.iterrows()
        )
        backends = ", ".join(sorted(session["backend"].unique()))
        flagged.append([workload, run_id, backends, detail])

    return pd.DataFrame(flagged, columns=columns)


def rank_backends(df: pd.DataFrame) -> pd.DataFrame:
    """Rank measured backends per workload by mean latency.

    ``relative`` is each backend's mean divided by the fastest mean for the
    same workload, so the fastest engine reads ``1.0``.
    """
    measured = df[df["status"].isin(MEASURED_STATUSES)].dropna(subset=["latency_mean"])
    if measured.empty:
        return pd.DataFrame(columns=["workload", "backend", "runs", "latency_mean", "latency_p95", "relative"])

    ranking = (
        measured.groupby(["workload", "backend"])
        .agg(runs=("run_id", "count"), latency_mean=("latency_mean", "mean"), latency_p95=("latency_p95", "mean"))
        .reset_index()
    )
    ranking["relative"] = ranking["latency_mean"] / ranking.groupby("workload")["latency_mean"].transform("min")
    return ranking.sort_values(["workload", "latency_mean"]).reset_index(drop=True)


def unmeasured_runs(df: pd.DataFrame) -> pd.DataFrame:
    """Return the runs that produced no measurements (failed, unavailable, ...)."""
    skipped = df[~df["status"].isin(MEASURED_STATUSES)]
    return (
        skipped.reindex(columns=["workload", "backend", "status", "run_id", "error"])
        .sort_values(["workload", "backend", "run_id"])
        .reset_index(drop=True)
    )


def _cell(value: Any) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return "n/a"
    if isinstance(value, float):
        return f"{value:.3f}"
    return str(value).replace("|", "\\|").replace("\n", " ")


def _table(headers: list[str], rows: list[list[Any]]) -> list[str]:
    lines = ["| " + " | ".join(headers) + " |", "|" + "---|" * len(headers)]
    lines.extend("| " + " | ".join(_cell(value) for value in row) + " |" for row in rows)
    return lines


def write_summary_markdown(
    output_path: Path,
    merged_df: pd.DataFrame,
    ranking: pd.DataFrame,
    mismatch_df: pd.DataFrame,
    artifact_names: dict[str, str | None],
) -> Path:
    """Write the markdown report for a merged comparison."""
    workloads = sorted(merged_df["workload"].unique())
    lines = [
        "# Backend Comparison Report",
        "",
        f"{len(merged_df)} backend runs from {merged_df['source_file'].nunique()} result file(s); "
        f"workloads: {', '.join(workloads)}.",
    ]

    for workload in workloads:
        rows = ranking[ranking["workload"] == workload]
        lines += ["", f"## {workload}", ""]
        if rows.empty:
            lines.append("No backend was measured for this workload.")
            continue
        lines += _table(
            ["rank", "backend", "runs", "mean_ms", "p95_ms", "relative"],
            [
                [rank, row.backend, row.runs, row.latency_mean, row.latency_p95, f"{row.relative:.2f}x"]
                for rank, row in enumerate(rows.itertuples(index=False), start=1)
            ],
        )

    skipped = unmeasured_runs(merged_df)
    if not skipped.empty:
        lines += ["", "## Not Measured", ""]
        lines += _table(list(skipped.columns), skipped.values.tolist())

    lines += ["", "## Configuration Mismatches", ""]
    if mismatch_df.empty:
        lines.append("Every session measured its backends with the same settings.")
    else:
        lines += _table(list(mismatch_df.columns), mismatch_df.values.tolist())

    lines += ["", "## Artifacts", ""]
    for label, name in artifact_names.items():
        lines.append(f"- {label}: `{name}`" if name else f"- {label}: not generated (no measured runs)")

    output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return output_path


def plot_latency(ranking: pd.DataFrame, output_path: Path) -> Path | None:
    """Draw mean latency bars with a p95 tick, one panel per workload."""
    if ranking.empty:
        return None

    workloads = list(ranking["workload"].unique())
    fig, axes = plt.subplots(len(workloads), 1, figsize=(8, 1.5 + 1.8 * len(workloads)), squeeze=False)
    for ax, workload in zip(axes[:, 0], workloads):
        rows = ranking[ranking["workload"] == workload]
        positions = list(range(len(rows)))
        ax.barh(positions, rows["latency_mean"], color="tab:blue", label="mean")
        ax.scatter(rows["latency_p95"], positions, marker="|", s=300, color="black", label="p95")
        ax.set_yticks(positions)
        ax.set_yticklabels(rows["backend"])
        ax.invert_yaxis()
        ax.set_title(workload)
        ax.set_xlabel("Latency per call (ms)")
    axes[0, 0].legend(loc="lower right")

    fig.tight_layout()
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
    return output_path


def run_comparison(input_paths: list[Path], output_dir: Path) -> dict[str, Path]:
    """Merge the results under *input_paths* and write the report to *output_dir*."""
    result_files = discover_result_files(input_paths)
    if not result_files:
        raise FileNotFoundError(f"No {JSONL_FILENAME} or {CSV_FILENAME} found under the input paths")

    merged_df = load_normalized_records(result_files)
    if merged_df.empty:
        raise ValueError("The discovered result files hold no records")
    merged_df = merged_df.sort_values(["workload", "run_id", "backend"]).reset_index(drop=True)

    output_dir.mkdir(parents=True, exist_ok=True)
    artifacts = {"comparison_csv": output_dir / "comparison.csv"}
    merged_df.to_csv(artifacts["comparison_csv"], index=False)

    ranking = rank_backends(merged_df)
    latency_plot = plot_latency(ranking, output_dir / "latency_comparison.png")
    if latency_plot is not None:
        artifacts["latency_plot"] = latency_plot

    artifacts["summary"] = write_summary_markdown(
        output_dir / "summary.md",
        merged_df,
        ranking,
        detect_config_mismatches(merged_df),
        {
            "Merged records": artifacts["comparison_csv"].name,
            "Latency plot": latency_plot.name if latency_plot is not None else None,
        },
    )
    return artifacts


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="scriptbench-compare",
        description="Merge scriptbench result files and report how the backends compare.",
    )
    parser.add_argument("inputs", nargs="+", type=Path, help="Result directories (searched recursively) or files.")
    parser.add_argument(
        "-o",
        "--output-dir",
        type=Path,
        default=Path("artifacts/comparison"),
        help="Directory for summary.md, comparison.csv and the latency plot.",
    )
    args = parser.parse_args(argv)

    try:
        artifacts = run_comparison(args.inputs, args.output_dir)
    except (FileNotFoundError, ValueError) as exc:
        parser.error(str(exc))

    for name, path in artifacts.items():
        print(f"{name}: {path}")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
