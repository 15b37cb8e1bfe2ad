"""Pydantic schemas for the HTTP surface."""

from .score import ScheduleRead, ScoreRead

__all__ = ["ScheduleRead", "ScoreRead"]
