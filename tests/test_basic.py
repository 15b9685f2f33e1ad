"""Packaging checks: version metadata and the installed entry points."""

from __future__ import annotations

import re
from pathlib import Path

import pytest

import scriptbench
from scriptbench.__main__ import main

PYPROJECT = Path(__file__).resolve().parents[1] / "pyproject.toml"


def test_version_matches_pyproject():
    declared = re.search(r'^version = "([^"]+)"$', PYPROJECT.read_text(encoding="utf-8"), re.MULTILINE)
    assert declared is not None
    assert scriptbench.__version__ == declared.group(1)


def test_console_scripts_point_at_callables():
    text = PYPROJECT.read_text(encoding="utf-8")
    for target in ("scriptbench.__main__:main", "scriptbench.analysis.compare_backends:main"):
        assert f'"{target}"' in text


def test_help_exits_cleanly_with_examples(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--help"])

    assert excinfo.value.code == 0
    out = capsys.readouterr().out
    assert out.startswith("usage: scriptbench")
    assert "scriptbench --mandatory v8" in out
