"""End-to-end tests for ``python -m scriptbench`` using registered stub backends."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from conftest import make_stub_class

from scriptbench.__main__ import (
    EXIT_MANDATORY_FAILED,
    EXIT_OK,
    EXIT_RESOURCE_MISSING,
    main,
)
from scriptbench.backends.base import register_backend


@pytest.fixture
def stub_backends(isolated_registry):
    register_backend("fast")(make_stub_class("fast", durations=[2.0]))
    register_backend("slow")(make_stub_class("slow", durations=[7.0]))
    register_backend("broken")(make_stub_class("broken", load_error="SyntaxError: bad token"))
    register_backend("absent")(make_stub_class("absent", available=False))
    return isolated_registry


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("SCRIPTBENCH_RESOURCES", raising=False)
    return tmp_path


def _argv(asset_dir: Path, workdir: Path, *extra: str) -> list[str]:
    return [
        "--resource-dir",
        str(asset_dir),
        "--output-dir",
        str(workdir / "out"),
        "--warmup",
        "2",
        "--iterations",
        "3",
        *extra,
    ]


def _records(workdir: Path) -> list[dict]:
    lines = (workdir / "out" / "results.jsonl").read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines if line.strip()]


def test_session_completes_and_writes_results(stub_backends, asset_dir, workdir, capsys):
    code = main(_argv(asset_dir, workdir, "--backends", "fast,slow", "--run-id", "r-1"))

    assert code == EXIT_OK
    out = capsys.readouterr().out
    assert "=== fast (stub engine) ===" in out
    assert out.count("iteration: 7") == 3
    assert "Summary" in out

    records = _records(workdir)
    assert [r["backend"] for r in records] == ["fast", "slow"]
    assert all(r["run_id"] == "r-1" for r in records)
    assert records[1]["total_ms"] == 21.0
    assert len({r["config_hash"] for r in records}) == 1
    assert (workdir / "out" / "results.csv").exists()


def test_unavailable_and_optional_failures_exit_zero(stub_backends, asset_dir, workdir, capsys):
    code = main(_argv(asset_dir, workdir, "--backends", "absent,broken,fast"))

    assert code == EXIT_OK
    out = capsys.readouterr().out
    assert "*** absent not available ***" in out
    assert "*** broken failed during loading:" in out
    assert [r["status"] for r in _records(workdir)] == ["unavailable", "failed", "completed"]


def test_mandatory_load_failure_exits_one(stub_backends, asset_dir, workdir):
    code = main(_argv(asset_dir, workdir, "--backends", "broken,fast", "--mandatory", "broken"))

    assert code == EXIT_MANDATORY_FAILED
    records = _records(workdir)
    assert records[0]["metadata"] == {"mandatory": True, "failed_phase": "loading"}
    assert records[1]["status"] == "completed"


def test_unknown_backend_is_reported_unavailable(stub_backends, asset_dir, workdir, capsys):
    code = main(_argv(asset_dir, workdir, "--backends", "nosuch,fast", "--no-save"))

    assert code == EXIT_OK
    assert "*** nosuch not available ***" in capsys.readouterr().out
    assert not (workdir / "out").exists()


def test_missing_asset_exits_two(stub_backends, workdir, capsys):
    empty = workdir / "empty"
    empty.mkdir()

    code = main(_argv(empty, workdir, "--backends", "fast"))

    assert code == EXIT_RESOURCE_MISSING
    assert "typescript.js" in capsys.readouterr().err
    assert not (workdir / "out").exists()


def test_dry_run_reports_availability_without_running(stub_backends, asset_dir, workdir, capsys):
    code = main(_argv(asset_dir, workdir, "--backends", "fast,absent", "--mandatory", "fast", "--dry-run"))

    assert code == EXIT_OK
    out = capsys.readouterr().out
    assert "[DRY RUN] fast: available (mandatory)" in out
    assert "[DRY RUN] absent: not available" in out
    assert not (workdir / "out").exists()


def test_parallel_session_prints_report_in_order(stub_backends, asset_dir, workdir, capsys):
    code = main(_argv(asset_dir, workdir, "--backends", "slow,fast", "--parallel", "--no-save"))

    assert code == EXIT_OK
    out = capsys.readouterr().out
    assert out.index("=== slow") < out.index("=== fast")


def test_config_file_supplies_backends_and_iterations(stub_backends, asset_dir, workdir, capsys):
    config_path = workdir / "session.yaml"
    config_path.write_text(
        "benchmark:\n"
        "  warmup_iterations: 1\n"
        "  measured_iterations: 2\n"
        "backends:\n"
        "  - fast\n"
        "  - name: broken\n"
        "    mandatory: true\n"
        f"resources:\n  dirs: ['{asset_dir}']\n"
        f"output:\n  results_dir: '{workdir / 'cfg-out'}'\n",
        encoding="utf-8",
    )

    code = main(["--config", str(config_path)])

    assert code == EXIT_MANDATORY_FAILED
    assert capsys.readouterr().out.count("iteration: 2") == 2
    assert (workdir / "cfg-out" / "results.jsonl").exists()


def test_list_backends(stub_backends, workdir, capsys):
    code = main(["--list-backends"])

    assert code == EXIT_OK
    out = capsys.readouterr().out
    assert "fast" in out
    assert "absent" in out
    assert "not available" in out
    # Bundled adapters are registered by the CLI as well.
    assert "duktape" in out


def test_invalid_workload_is_a_usage_error(stub_backends, asset_dir, workdir):
    with pytest.raises(SystemExit) as excinfo:
        main(_argv(asset_dir, workdir, "--workload", "compile-go"))
    assert excinfo.value.code == 2
