"""
Shared helpers for scriptbench entry points.

- cli_args: standard argparse flag set and validation
- metrics_schema: unified per-backend metrics record
- result_writer: JSONL / CSV persistence
- execution_guard: bounded invocation helper
"""

from .cli_args import add_common_benchmark_args, build_run_config, split_csv, validate_benchmark_args
from .execution_guard import ExecutionGuardResult, call_with_timeout, run_bounded
from .metrics_schema import (
    REQUIRED_FIELDS,
    UnifiedMetricsRecord,
    compute_config_hash,
    normalize_metrics_record,
    utc_timestamp,
)
from .result_writer import (
    CSV_FIELD_ORDER,
    append_jsonl_record,
    export_jsonl_to_csv,
    write_session_records,
)

__all__ = [
    # cli helpers
    "add_common_benchmark_args",
    "validate_benchmark_args",
    "build_run_config",
    "split_csv",
    # execution guard
    "ExecutionGuardResult",
    "run_bounded",
    "call_with_timeout",
    # metrics
    "REQUIRED_FIELDS",
    "UnifiedMetricsRecord",
    "compute_config_hash",
    "normalize_metrics_record",
    "utc_timestamp",
    # writers
    "CSV_FIELD_ORDER",
    "append_jsonl_record",
    "export_jsonl_to_csv",
    "write_session_records",
]
