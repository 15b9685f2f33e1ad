"""
Configuration loader for scriptbench sessions.

Supports:
- YAML config loading with validation
- Environment variable substitution
- Default config generation
- Quick mode override
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ..runner import DEFAULT_MEASURED_ITERATIONS, DEFAULT_WARMUP_ITERATIONS, RunConfig
from ..workloads import DEFAULT_WORKLOAD, normalize_workload_name

DEFAULT_BACKEND_ORDER: tuple[str, ...] = ("v8", "node", "duktape")

QUICK_WARMUP_ITERATIONS = 3
QUICK_MEASURED_ITERATIONS = 3

_ENV_PATTERN = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")

_TRUE_STRINGS = frozenset({"true", "yes", "on", "1"})
_FALSE_STRINGS = frozenset({"false", "no", "off", "0"})


def _as_bool(value: Any, key: str) -> bool:
    """Parse a YAML value that may have been produced by env substitution."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ValueError(f"{key} must be a boolean (true/false, yes/no, 1/0); got {value!r}")


@dataclass
class BenchmarkSection:
    """Protocol settings."""

    workload: str = DEFAULT_WORKLOAD
    warmup_iterations: int = DEFAULT_WARMUP_ITERATIONS
    measured_iterations: int = DEFAULT_MEASURED_ITERATIONS
    invoke_timeout_s: float | None = None
    parallel: bool = False

    def to_run_config(self) -> RunConfig:
        return RunConfig(
            warmup_iterations=self.warmup_iterations,
            measured_iterations=self.measured_iterations,
            invoke_timeout_s=self.invoke_timeout_s,
        )


@dataclass
class BackendEntry:
    """One configured backend."""

    name: str
    enabled: bool = True
    mandatory: bool = False
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class ResourceConfig:
    """Where to look for workload assets."""

    dirs: list[str] = field(default_factory=lambda: ["resources"])


@dataclass
class OutputConfig:
    """Output configuration."""

    results_dir: str = "results"
    save_results: bool = True


@dataclass
class SessionConfig:
    """Complete session configuration."""

    benchmark: BenchmarkSection = field(default_factory=BenchmarkSection)
    backends: list[BackendEntry] = field(
        default_factory=lambda: [BackendEntry(name=n) for n in DEFAULT_BACKEND_ORDER]
    )
    resources: ResourceConfig = field(default_factory=ResourceConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    source: str | None = None

    def enabled_backends(self) -> list[BackendEntry]:
        return [entry for entry in self.backends if entry.enabled]

    def backend_entry(self, name: str) -> BackendEntry:
        """Return the entry for *name*, or a default entry if it is not configured."""
        for entry in self.backends:
            if entry.name == name.lower():
                return entry
        return BackendEntry(name=name.lower())

    def select_backends(self, names: list[str]) -> None:
        """Restrict the session to *names*, in that order (unknown names are kept)."""
        selected = []
        for name in names:
            entry = self.backend_entry(name)
            selected.append(
                BackendEntry(
                    name=entry.name,
                    enabled=True,
                    mandatory=entry.mandatory,
                    options=dict(entry.options),
                )
            )
        self.backends = selected

    def mark_mandatory(self, names: list[str]) -> None:
        wanted = {n.lower() for n in names}
        for entry in self.backends:
            if entry.name in wanted:
                entry.mandatory = True


class ConfigLoader:
    """Configuration loader with validation and defaults."""

    def __init__(self):
        self.config_dir = Path(__file__).parent

    @property
    def default_config_path(self) -> Path:
        return self.config_dir / "default.yaml"

    def load(self, path: str | Path) -> SessionConfig:
        """Load configuration from YAML file."""
        config_path = Path(path)
        if not config_path.is_absolute() and not config_path.exists():
            config_path = self.config_dir / config_path

        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, encoding="utf-8") as f:
            raw_config = yaml.safe_load(f) or {}

        if not isinstance(raw_config, dict):
            raise ValueError(f"Config file {config_path} must contain a mapping at top level")

        raw_config = self._substitute_env_vars(raw_config)
        config = self._parse_config(raw_config)
        config.source = str(config_path)
        return config

    def load_default(self) -> SessionConfig:
        """Load the bundled ``default.yaml`` (falls back to built-in defaults)."""
        if self.default_config_path.exists():
            return self.load(self.default_config_path)
        return SessionConfig()

    def _substitute_env_vars(self, obj: Any) -> Any:
        """Recursively substitute ${VAR} and ${VAR:-default} with environment variables."""
        if isinstance(obj, str):

            def replacer(match: re.Match) -> str:
                var_name = match.group(1)
                default = match.group(2) or ""
                return os.environ.get(var_name, default)

            return _ENV_PATTERN.sub(replacer, obj)
        elif isinstance(obj, dict):
            return {k: self._substitute_env_vars(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [self._substitute_env_vars(item) for item in obj]
        return obj

    def _parse_config(self, raw: dict) -> SessionConfig:
        """Parse raw config dict into SessionConfig."""
        bench_raw = raw.get("benchmark", {}) or {}
        timeout = bench_raw.get("invoke_timeout_s")
        benchmark = BenchmarkSection(
            workload=str(bench_raw.get("workload", DEFAULT_WORKLOAD)),
            warmup_iterations=int(bench_raw.get("warmup_iterations", DEFAULT_WARMUP_ITERATIONS)),
            measured_iterations=int(
                bench_raw.get("measured_iterations", DEFAULT_MEASURED_ITERATIONS)
            ),
            invoke_timeout_s=float(timeout) if timeout not in (None, "") else None,
            parallel=_as_bool(bench_raw.get("parallel", False), "benchmark.parallel"),
        )

        backends_raw = raw.get("backends")
        if backends_raw is None:
            backends = [BackendEntry(name=n) for n in DEFAULT_BACKEND_ORDER]
        else:
            backends = []
            for item in backends_raw:
                if isinstance(item, str):
                    item = {"name": item}
                if "name" not in item:
                    raise ValueError(f"Backend entry without a name: {item!r}")
                prefix = f"backends.{item['name']}"
                backends.append(
                    BackendEntry(
                        name=str(item["name"]).lower(),
                        enabled=_as_bool(item.get("enabled", True), f"{prefix}.enabled"),
                        mandatory=_as_bool(item.get("mandatory", False), f"{prefix}.mandatory"),
                        options=dict(item.get("options", {}) or {}),
                    )
                )

        res_raw = raw.get("resources", {}) or {}
        resources = ResourceConfig(dirs=[str(d) for d in res_raw.get("dirs", ["resources"]) if d])

        output_raw = raw.get("output", {}) or {}
        output = OutputConfig(
            results_dir=str(output_raw.get("results_dir", "results")),
            save_results=_as_bool(output_raw.get("save_results", True), "output.save_results"),
        )

        config = SessionConfig(
            benchmark=benchmark,
            backends=backends,
            resources=resources,
            output=output,
        )
        self.validate(config)
        return config

    def validate(self, config: SessionConfig) -> None:
        """Raise ``ValueError`` for settings the runner would reject."""
        config.benchmark.workload = normalize_workload_name(config.benchmark.workload)
        config.benchmark.to_run_config()
        names = [entry.name for entry in config.backends]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate backend entries: {', '.join(duplicates)}")

    def apply_quick_mode(self, config: SessionConfig) -> SessionConfig:
        """Apply quick mode overrides for faster smoke runs."""
        config.benchmark.warmup_iterations = QUICK_WARMUP_ITERATIONS
        config.benchmark.measured_iterations = QUICK_MEASURED_ITERATIONS
        return config

    def save(self, config: SessionConfig, path: str | Path) -> None:
        """Save configuration to YAML file."""
        config_dict = {
            "benchmark": {
                "workload": config.benchmark.workload,
                "warmup_iterations": config.benchmark.warmup_iterations,
                "measured_iterations": config.benchmark.measured_iterations,
                "invoke_timeout_s": config.benchmark.invoke_timeout_s,
                "parallel": config.benchmark.parallel,
            },
            "resources": {"dirs": list(config.resources.dirs)},
            "backends": [
                {
                    "name": entry.name,
                    "enabled": entry.enabled,
                    "mandatory": entry.mandatory,
                    "options": dict(entry.options),
                }
                for entry in config.backends
            ],
            "output": {
                "results_dir": config.output.results_dir,
                "save_results": config.output.save_results,
            },
        }

        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)
