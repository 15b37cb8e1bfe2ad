"""Recurring jobs wired onto the scheduler."""

from .rollups import register_rollups, run_rollup

__all__ = ["register_rollups", "run_rollup"]
