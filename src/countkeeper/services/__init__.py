# src/countkeeper/services/__init__.py
"""Counter, retention, rollup, scheduling and score services."""

from .counter_store import CounterStore, Increment
from .retention import HistoryItem, RetentionEnforcer
from .rollup import RollupAggregator, RollupResult
from .scheduler import Cron, crontab, register
from .scores import Score, ScoreEngine

__all__ = [
    "CounterStore", "Increment",
    "HistoryItem", "RetentionEnforcer",
    "RollupAggregator", "RollupResult",
    "Cron", "crontab", "register",
    "Score", "ScoreEngine",
]
