"""Shared argparse helpers for scriptbench entry points.

Entry points use :func:`add_common_benchmark_args` to register the canonical
flag set, then call :func:`validate_benchmark_args` before running to catch
invalid values early.

Standardised flags
------------------
- ``--backends``      – comma-separated backend names (default: from config)
- ``--mandatory``     – backends whose load failure makes the exit code non-zero
- ``--warmup``        – warmup iterations per backend
- ``--iterations``    – measured iterations per backend
- ``--timeout``       – per-invocation timeout in seconds (default: none)
- ``--parallel``      – run backends concurrently, one thread each
- ``--output-dir``    – root directory for result artefacts
- ``--run-id``        – explicit run identifier recorded in every result

Count flags default to ``None`` so that values from the YAML config are only
overridden when the flag is actually given.

Usage example
-------------
.. code-block:: python

    import argparse
    from scriptbench.common.cli_args import (
        add_common_benchmark_args,
        validate_benchmark_args,
        build_run_config,
    )

    parser = argparse.ArgumentParser(description="My benchmark")
    add_common_benchmark_args(parser)
    args = parser.parse_args()
    validate_benchmark_args(args)
    run_cfg = build_run_config(args)
"""

from __future__ import annotations

import argparse
from typing import Any


def split_csv(value: str | None) -> list[str]:
    """Split ``"a, b,,c"`` into ``["a", "b", "c"]`` (lowercased)."""
    if not value:
        return []
    return [part.strip().lower() for part in value.split(",") if part.strip()]


def add_common_benchmark_args(
    parser: argparse.ArgumentParser,
    *,
    include_quick: bool = True,
    include_dry_run: bool = True,
) -> argparse.ArgumentParser:
    """Add the standardised benchmark flag set to *parser*.

    Parameters
    ----------
    parser:
        The :class:`argparse.ArgumentParser` to mutate in-place.
    include_quick:
        Whether to add the ``--quick`` shortcut flag (default: ``True``).
    include_dry_run:
        Whether to add the ``--dry-run`` flag (default: ``True``).

    Returns
    -------
    argparse.ArgumentParser
        The same *parser* object (for method-chaining if desired).
    """
    grp = parser.add_argument_group(
        "common benchmark arguments",
        description="Flags shared by all scriptbench entry points.",
    )

    # ── Backends ───────────────────────────────────────────────────────────
    grp.add_argument(
        "--backends",
        "-b",
        type=str,
        default=None,
        metavar="NAMES",
        help="Comma-separated backends to run, in order (default: all enabled in config).",
    )
    grp.add_argument(
        "--mandatory",
        type=str,
        default=None,
        metavar="NAMES",
        help="Comma-separated backends whose load failure yields exit code 1.",
    )

    # ── Protocol ───────────────────────────────────────────────────────────
    grp.add_argument(
        "--warmup",
        type=int,
        default=None,
        metavar="N",
        help="Warmup iterations per backend (default: 15, or config value).",
    )
    grp.add_argument(
        "--iterations",
        "-n",
        type=int,
        default=None,
        metavar="N",
        help="Measured iterations per backend (default: 10, or config value).",
    )
    grp.add_argument(
        "--timeout",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Per-invocation timeout; unset means calls may block indefinitely.",
    )
    grp.add_argument(
        "--parallel",
        action="store_true",
        default=False,
        help="Run backends concurrently, each with its own engine instance.",
    )

    # ── Output ─────────────────────────────────────────────────────────────
    grp.add_argument(
        "--output-dir",
        type=str,
        default=None,
        metavar="DIR",
        help="Root directory for result artefacts (default: results, or config value).",
    )
    grp.add_argument(
        "--run-id",
        type=str,
        default=None,
        metavar="ID",
        help="Run identifier recorded in every result (default: generated).",
    )
    grp.add_argument(
        "--no-save",
        action="store_true",
        default=False,
        help="Print results only; do not write JSONL/CSV artefacts.",
    )

    # ── Modifiers ──────────────────────────────────────────────────────────
    grp.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Enable verbose / debug output.",
    )
    grp.add_argument(
        "--log-file",
        type=str,
        default=None,
        metavar="PATH",
        help="Also write log records to PATH.",
    )

    if include_quick:
        grp.add_argument(
            "--quick",
            action="store_true",
            default=False,
            help="Use reduced iteration counts suitable for smoke-testing.",
        )

    if include_dry_run:
        grp.add_argument(
            "--dry-run",
            action="store_true",
            default=False,
            help="Load the workload and report backend availability without benchmarking.",
        )

    return parser


def validate_benchmark_args(args: argparse.Namespace) -> None:
    """Validate *args*; exit through argparse's error mechanism on failure.

    Checks performed
    ----------------
    * ``--warmup`` and ``--iterations`` must be ≥ 1 when given.
    * ``--timeout`` must be > 0 when given.
    * ``--backends`` must not name the same backend twice.
    * ``--mandatory`` backends must be part of ``--backends`` when both are given.

    Raises
    ------
    SystemExit
        With a non-zero code and an actionable error message.
    """
    errors: list[str] = []

    warmup = getattr(args, "warmup", None)
    if warmup is not None and warmup < 1:
        errors.append(f"--warmup must be ≥ 1; got {warmup}.")

    iterations = getattr(args, "iterations", None)
    if iterations is not None and iterations < 1:
        errors.append(f"--iterations must be ≥ 1; got {iterations}.")

    timeout = getattr(args, "timeout", None)
    if timeout is not None and timeout <= 0:
        errors.append(f"--timeout must be > 0; got {timeout}.")

    backends = split_csv(getattr(args, "backends", None))
    duplicates = sorted({name for name in backends if backends.count(name) > 1})
    if duplicates:
        errors.append(f"--backends lists duplicates: {', '.join(duplicates)}.")

    mandatory = split_csv(getattr(args, "mandatory", None))
    if backends and mandatory:
        missing = [name for name in mandatory if name not in backends]
        if missing:
            errors.append(
                f"--mandatory names backends not selected by --backends: {', '.join(missing)}."
            )

    if errors:
        _fake_parser = argparse.ArgumentParser()
        _fake_parser.error("argument validation failed:\n  " + "\n  ".join(errors))


def build_run_config(args: argparse.Namespace, **extra: Any) -> dict[str, Any]:
    """Build a standardised run-configuration dict from *args*.

    Parameters
    ----------
    args:
        Parsed namespace containing (at minimum) the flags added by
        :func:`add_common_benchmark_args`.
    **extra:
        Resolved values (e.g. effective iteration counts) merged on top.
    """
    cfg: dict[str, Any] = {
        "backends": split_csv(getattr(args, "backends", None)),
        "mandatory": split_csv(getattr(args, "mandatory", None)),
        "warmup": getattr(args, "warmup", None),
        "iterations": getattr(args, "iterations", None),
        "timeout": getattr(args, "timeout", None),
        "parallel": getattr(args, "parallel", False),
        "output_dir": getattr(args, "output_dir", None),
        "quick": getattr(args, "quick", False),
        "dry_run": getattr(args, "dry_run", False),
        "verbose": getattr(args, "verbose", False),
    }
    cfg.update(extra)
    return cfg
