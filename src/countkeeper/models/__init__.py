# src/countkeeper/models/__init__.py
"""SQLAlchemy models for the countkeeper service."""

from .counters import COUNTER_TYPES, FineCounter, MediumCounter, TotalCounter
from .history import LOG_POLICIES, HistoryEntry, LogPolicy, policy_for, trim_history
from .identity import Scope, Subject

__all__ = [
    "COUNTER_TYPES",
    "FineCounter", "MediumCounter", "TotalCounter",
    "LOG_POLICIES", "HistoryEntry", "LogPolicy", "policy_for", "trim_history",
    "Scope", "Subject",
]
