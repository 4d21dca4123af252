"""Checklist with a bounded-retention task store."""

__version__ = "0.1.0"
