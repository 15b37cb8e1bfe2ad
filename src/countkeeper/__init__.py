"""Tiered event counters with bounded history and scheduled rollups."""

__version__ = "0.1.0"
