"""Durable write-reconciliation engine for LinkLog profile snapshots."""

__version__ = "0.3.0"
