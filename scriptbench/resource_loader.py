"""Named text asset lookup.

Workload sources are read from named assets rather than embedded in code.
Small assets (the workload entry scripts and the node driver) ship inside the
package; the compiler library and lib pack are supplied through one or more
search directories.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .errors import ResourceNotFoundError

logger = logging.getLogger(__name__)

BUNDLED_RESOURCE_DIR = Path(__file__).parent / "resources"


class ResourceLoader:
    """Resolve asset names against search directories, then the bundled assets."""

    def __init__(self, search_dirs: list[str | Path] | None = None, include_bundled: bool = True):
        self.search_dirs = [Path(d).expanduser() for d in (search_dirs or [])]
        if include_bundled:
            self.search_dirs.append(BUNDLED_RESOURCE_DIR)

    def locate(self, name: str) -> Path:
        """Return the first existing path for *name*.

        Raises
        ------
        ResourceNotFoundError
            If no search directory contains *name*.
        """
        for directory in self.search_dirs:
            candidate = directory / name
            if candidate.is_file():
                return candidate
        raise ResourceNotFoundError(name, [str(d) for d in self.search_dirs])

    def load_text(self, name: str) -> str:
        path = self.locate(name)
        logger.debug("Loading resource %s from %s", name, path)
        return path.read_text(encoding="utf-8")

    def exists(self, name: str) -> bool:
        try:
            self.locate(name)
        except ResourceNotFoundError:
            return False
        return True
