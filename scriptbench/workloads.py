"""Workload catalog.

Each entry names the bundled entry script, the entry-point function and the
user-supplied library assets that must be evaluated before it.
"""

from __future__ import annotations

from .backends.base import Workload
from .resource_loader import ResourceLoader

TYPESCRIPT_ASSET = "typescript.js"
LIB_PACK_ASSET = "libPack.js"

WORKLOAD_CATALOG: dict[str, dict[str, object]] = {
    "compile-ts": {
        "description": "TypeScript compile with type checking against the ES2020 lib",
        "source": "compile_ts.js",
        "entry": "compileTypescript",
        "auxiliary": (TYPESCRIPT_ASSET, LIB_PACK_ASSET),
    },
    "compile-ts-no-typecheck": {
        "description": "TypeScript compile without lib definitions or type checking",
        "source": "compile_ts_no_typecheck.js",
        "entry": "compileTypescript",
        "auxiliary": (TYPESCRIPT_ASSET, LIB_PACK_ASSET),
    },
}

DEFAULT_WORKLOAD = "compile-ts"


def normalize_workload_name(name: str) -> str:
    candidate = name.strip().lower()
    if candidate in WORKLOAD_CATALOG:
        return candidate
    valid = ", ".join(sorted(WORKLOAD_CATALOG))
    raise ValueError(f"Invalid workload: {name}. Supported values: {valid}")


def required_assets(name: str) -> list[str]:
    meta = WORKLOAD_CATALOG[normalize_workload_name(name)]
    return [*meta["auxiliary"], meta["source"]]  # type: ignore[misc]


def build_workload(name: str, loader: ResourceLoader) -> Workload:
    """Load every asset of catalog entry *name* into a :class:`Workload`.

    Raises
    ------
    ValueError
        If *name* is not in the catalog.
    ResourceNotFoundError
        If any asset is missing; no backend can run without it.
    """
    key = normalize_workload_name(name)
    meta = WORKLOAD_CATALOG[key]
    auxiliary_names = tuple(meta["auxiliary"])  # type: ignore[arg-type]
    auxiliary_sources = tuple(loader.load_text(asset) for asset in auxiliary_names)
    source_name = str(meta["source"])
    return Workload(
        name=key,
        source_text=loader.load_text(source_name),
        entry_point=str(meta["entry"]),
        auxiliary_sources=auxiliary_sources,
        auxiliary_names=auxiliary_names,
        source_name=source_name,
    )
