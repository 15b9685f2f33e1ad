"""Shared result writers for unified benchmark metrics records."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any

from .metrics_schema import normalize_metrics_record

JSONL_FILENAME = "results.jsonl"
CSV_FILENAME = "results.csv"

CSV_FIELD_ORDER: tuple[str, ...] = (
    "backend",
    "workload",
    "run_id",
    "status",
    "warmup_iterations",
    "measured_iterations",
    "completed_iterations",
    "latency_mean",
    "latency_p50",
    "latency_p95",
    "latency_min",
    "latency_max",
    "total_ms",
    "timestamp",
    "config_hash",
    "error",
)


def append_jsonl_record(path: str | Path, record: dict[str, Any]) -> Path:
    """Append one normalized metrics record to a JSONL file."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    normalized = normalize_metrics_record(record)
    with target.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(normalized, ensure_ascii=False) + "\n")
    return target


def read_jsonl_records(path: str | Path) -> list[dict[str, Any]]:
    """Read every record of a JSONL file, normalized to the unified key set."""
    records: list[dict[str, Any]] = []
    with Path(path).open("r", encoding="utf-8") as handle:
        for line in handle:
            stripped = line.strip()
            if stripped:
                records.append(normalize_metrics_record(json.loads(stripped)))
    return records


def export_jsonl_to_csv(jsonl_path: str | Path, csv_path: str | Path) -> Path:
    """Export normalized JSONL records to CSV with stable column order."""
    target = Path(csv_path)
    target.parent.mkdir(parents=True, exist_ok=True)

    rows = [
        {key: record.get(key) for key in CSV_FIELD_ORDER}
        for record in read_jsonl_records(jsonl_path)
    ]

    with target.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=list(CSV_FIELD_ORDER))
        writer.writeheader()
        writer.writerows(rows)

    return target


def write_session_records(output_dir: str | Path, records: list[dict[str, Any]]) -> dict[str, Path]:
    """Append *records* to ``results.jsonl`` under *output_dir* and refresh ``results.csv``."""
    directory = Path(output_dir)
    jsonl_path = directory / JSONL_FILENAME
    directory.mkdir(parents=True, exist_ok=True)
    jsonl_path.touch(exist_ok=True)
    for record in records:
        append_jsonl_record(jsonl_path, record)
    csv_path = export_jsonl_to_csv(jsonl_path, directory / CSV_FILENAME)
    return {"jsonl": jsonl_path, "csv": csv_path}
