"""Configuration module for scriptbench sessions."""

from .config_loader import (
    BackendEntry,
    BenchmarkSection,
    ConfigLoader,
    OutputConfig,
    ResourceConfig,
    SessionConfig,
)

__all__ = [
    "BackendEntry",
    "BenchmarkSection",
    "ConfigLoader",
    "OutputConfig",
    "ResourceConfig",
    "SessionConfig",
]
