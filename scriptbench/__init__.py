"""Latency benchmarks for a TypeScript-compilation workload across JavaScript engines.

The package runs one fixed workload against interchangeable script
execution backends (embedded V8, a ``node`` child process, the legacy
Duktape interpreter) with a warmup/measurement protocol, and reports the
per-iteration latency of each backend.
"""

from ._version import __author__, __email__, __version__

__all__ = ["__version__", "__author__", "__email__"]
