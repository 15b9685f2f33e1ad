"""CLI entry point for scriptbench.

Runs the configured workload against every enabled backend, one after the
other, and prints per-iteration latencies.

Usage examples:

    python -m scriptbench --resource-dir ./assets
    python -m scriptbench --backends v8,node --iterations 20
    python -m scriptbench --workload compile-ts-no-typecheck --quick
    python -m scriptbench --config my_session.yaml --mandatory v8
    python -m scriptbench --list-backends

Exit codes: 0 on completion (unavailable backends are tolerated), 1 when a
mandatory backend failed to load, 2 when a workload asset is missing.
"""

from __future__ import annotations

import argparse
import logging
import sys
import uuid
from pathlib import Path

EXIT_OK = 0
EXIT_MANDATORY_FAILED = 1
EXIT_RESOURCE_MISSING = 2

logger = logging.getLogger("scriptbench")


def setup_logging(verbose: bool = False, log_file: str | None = None) -> None:
    """Configure root logging for a CLI session."""
    log_level = logging.DEBUG if verbose else logging.INFO

    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt=date_format,
        handlers=handlers,
        force=True,
    )


def _build_parser() -> argparse.ArgumentParser:
    from scriptbench.common.cli_args import add_common_benchmark_args
    from scriptbench.workloads import DEFAULT_WORKLOAD, WORKLOAD_CATALOG

    parser = argparse.ArgumentParser(
        prog="scriptbench",
        description="TypeScript-compile latency benchmark across JavaScript engines",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
    # Run every enabled backend with assets from ./assets
    scriptbench --resource-dir ./assets

    # Only V8 and node, 20 measured iterations
    scriptbench --backends v8,node --iterations 20

    # Fail (exit 1) if the v8 backend cannot load the workload
    scriptbench --mandatory v8

    # Show registered backends and whether they are available
    scriptbench --list-backends
""",
    )

    selection_grp = parser.add_argument_group("session selection")
    selection_grp.add_argument(
        "--workload",
        "-w",
        type=str,
        default=None,
        help=(
            f"Workload to run ({', '.join(sorted(WORKLOAD_CATALOG))}; "
            f"default: {DEFAULT_WORKLOAD}, or config value)."
        ),
    )
    selection_grp.add_argument(
        "--config", "-c", type=str, help="Path to a session config YAML file."
    )
    selection_grp.add_argument(
        "--resource-dir",
        action="append",
        default=[],
        metavar="DIR",
        help="Directory containing typescript.js / libPack.js (repeatable; searched first).",
    )
    selection_grp.add_argument(
        "--list-backends",
        action="store_true",
        help="List registered backends with their availability and exit.",
    )

    add_common_benchmark_args(parser, include_quick=True, include_dry_run=True)
    return parser


def _list_backends() -> int:
    from scriptbench.backends.base import list_backends, resolve_backend

    for name in list_backends():
        backend = resolve_backend(name)
        state = "available" if backend.is_available() else "not available"
        print(f"{name:<10} {state:<14} {backend.description}")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    from scriptbench.common.cli_args import build_run_config, split_csv, validate_benchmark_args

    validate_benchmark_args(args)
    setup_logging(verbose=args.verbose, log_file=args.log_file)

    # Import here so --help stays fast.
    from scriptbench.backends.base import load_all_backends, resolve_backend
    from scriptbench.common.metrics_schema import compute_config_hash
    from scriptbench.common.result_writer import write_session_records
    from scriptbench.config.config_loader import ConfigLoader
    from scriptbench.errors import ResourceNotFoundError
    from scriptbench.reporter import (
        build_metrics_record,
        format_report,
        format_result,
        format_summary,
    )
    from scriptbench.resource_loader import ResourceLoader
    from scriptbench.runner import BenchmarkResult, BenchmarkRunner, RunStatus
    from scriptbench.workloads import build_workload, normalize_workload_name

    load_all_backends()
    if args.list_backends:
        return _list_backends()

    # ── Configuration: YAML first, CLI flags override ─────────────────────
    config_loader = ConfigLoader()
    try:
        config = config_loader.load(args.config) if args.config else config_loader.load_default()
    except (FileNotFoundError, ValueError) as exc:
        parser.error(str(exc))

    if args.quick:
        config = config_loader.apply_quick_mode(config)
    if args.workload:
        try:
            config.benchmark.workload = normalize_workload_name(args.workload)
        except ValueError as exc:
            parser.error(str(exc))
    if args.warmup is not None:
        config.benchmark.warmup_iterations = args.warmup
    if args.iterations is not None:
        config.benchmark.measured_iterations = args.iterations
    if args.timeout is not None:
        config.benchmark.invoke_timeout_s = args.timeout
    if args.parallel:
        config.benchmark.parallel = True
    if args.output_dir:
        config.output.results_dir = args.output_dir
    if args.no_save:
        config.output.save_results = False
    if split_csv(args.backends):
        config.select_backends(split_csv(args.backends))
    config.mark_mandatory(split_csv(args.mandatory))

    run_config = config.benchmark.to_run_config()
    entries = config.enabled_backends()
    logger.debug(
        "Effective run configuration: %s",
        build_run_config(
            args,
            warmup=run_config.warmup_iterations,
            iterations=run_config.measured_iterations,
            timeout=run_config.invoke_timeout_s,
            parallel=config.benchmark.parallel,
            backends=[entry.name for entry in entries],
            config_source=config.source,
        ),
    )

    # ── Shared workload: a missing asset is fatal for the whole session ───
    loader = ResourceLoader([*args.resource_dir, *config.resources.dirs])
    try:
        workload = build_workload(config.benchmark.workload, loader)
    except ResourceNotFoundError as exc:
        logger.error("Cannot build workload '%s': %s", config.benchmark.workload, exc)
        print(f"ERROR: {exc}", file=sys.stderr)
        print(
            "Provide the asset with --resource-dir DIR or list its directory under "
            "resources.dirs in the session config.",
            file=sys.stderr,
        )
        return EXIT_RESOURCE_MISSING

    backends = [resolve_backend(entry.name, **entry.options) for entry in entries]

    if args.dry_run:
        print(f"[DRY RUN] workload '{workload.name}' loaded ({len(workload.sources())} sources)")
        for backend, entry in zip(backends, entries):
            state = "available" if backend.is_available() else "not available"
            flag = " (mandatory)" if entry.mandatory else ""
            print(f"[DRY RUN] {backend.backend_name}: {state}{flag}")
        return EXIT_OK

    # ── Session ────────────────────────────────────────────────────────────
    config_payload = {
        "workload": workload.name,
        "warmup_iterations": run_config.warmup_iterations,
        "measured_iterations": run_config.measured_iterations,
        "invoke_timeout_s": run_config.invoke_timeout_s,
        "backends": [entry.name for entry in entries],
    }
    config_hash = compute_config_hash(config_payload)
    run_id = args.run_id or f"{workload.name}-{uuid.uuid4().hex[:8]}"

    print(f"Running workload '{workload.name}' (run_id={run_id})")
    print(
        f"  warmup={run_config.warmup_iterations}  iterations={run_config.measured_iterations}  "
        f"backends={','.join(entry.name for entry in entries) or '(none)'}"
    )

    runner = BenchmarkRunner(run_config)
    streamed = not config.benchmark.parallel

    def _print_result(result: BenchmarkResult) -> None:
        print(format_result(result), flush=True)

    results = runner.run_session(
        backends,
        workload,
        parallel=config.benchmark.parallel,
        on_result=_print_result if streamed else None,
    )

    if streamed:
        # Result blocks were already printed as each backend finished.
        print("\nSummary")
        print(format_summary(results))
    else:
        print(format_report(results))

    if config.output.save_results:
        records = [
            build_metrics_record(
                result,
                run_id=run_id,
                config_hash=config_hash,
                metadata={"mandatory": config.backend_entry(result.backend_name).mandatory},
            )
            for result in results
        ]
        paths = write_session_records(Path(config.output.results_dir), records)
        print(f"\nResults appended to: {paths['jsonl']}")

    failed_mandatory = [
        result.backend_name
        for result in results
        if result.status is RunStatus.FAILED and config.backend_entry(result.backend_name).mandatory
    ]
    if failed_mandatory:
        logger.error("Mandatory backend(s) failed to load: %s", ", ".join(failed_mandatory))
        return EXIT_MANDATORY_FAILED
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
