"""Unified per-backend benchmark metrics schema.

This module defines a canonical record format for comparing script engines.
All records include the same key set; missing metrics are stored as ``None``
(serialized as ``null`` in JSON) rather than omitted.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

REQUIRED_FIELDS: tuple[str, ...] = (
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
)


def utc_timestamp() -> str:
    """Return an ISO-8601 UTC timestamp string."""
    return datetime.now(timezone.utc).isoformat()


def compute_config_hash(config: dict[str, Any]) -> str:
    """Compute deterministic hash of config dict (stable key order)."""
    canonical = json.dumps(config, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass
class UnifiedMetricsRecord:
    """Canonical per-backend metrics record.

    Required fields are always present in :meth:`to_dict`.  Latency values
    are milliseconds.
    """

    backend: str
    workload: str
    run_id: str
    status: str
    warmup_iterations: int
    measured_iterations: int
    completed_iterations: int = 0
    latency_mean: float | None = None
    latency_p50: float | None = None
    latency_p95: float | None = None
    latency_min: float | None = None
    latency_max: float | None = None
    total_ms: float | None = None
    timestamp: str = field(default_factory=utc_timestamp)
    config_hash: str | None = None
    error: str | None = None
    durations_ms: list[float] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert record to a JSON-serialisable dict with fixed key set."""
        return {
            "backend": self.backend,
            "workload": self.workload,
            "run_id": self.run_id,
            "status": self.status,
            "warmup_iterations": int(self.warmup_iterations),
            "measured_iterations": int(self.measured_iterations),
            "completed_iterations": int(self.completed_iterations),
            "latency_mean": self.latency_mean,
            "latency_p50": self.latency_p50,
            "latency_p95": self.latency_p95,
            "latency_min": self.latency_min,
            "latency_max": self.latency_max,
            "total_ms": self.total_ms,
            "timestamp": self.timestamp,
            "config_hash": self.config_hash,
            "error": self.error,
            "durations_ms": list(self.durations_ms),
            "metadata": self.metadata,
        }


def normalize_metrics_record(record: dict[str, Any]) -> dict[str, Any]:
    """Normalize an input record to the unified schema key set.

    Missing required fields are set to ``None``.
    """
    normalized = {key: record.get(key, None) for key in REQUIRED_FIELDS}
    normalized["config_hash"] = record.get("config_hash")
    normalized["error"] = record.get("error")
    normalized["durations_ms"] = record.get("durations_ms", [])
    normalized["metadata"] = record.get("metadata", {})
    return normalized
