"""Offline analysis of persisted scriptbench results."""
