"""Response models for score and schedule endpoints."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ScoreRead(BaseModel):
    """Counts per named time bucket for one subject within one scope."""

    subject_id: int
    scope_id: int
    counter_type: str | None = Field(default=None, description="Counter type filter, all types when null.")
    today: int
    yesterday: int
    this_week: int
    last_week: int
    this_month: int
    last_month: int
    this_year: int
    last_year: int
    all_time: int


class ScheduleRead(BaseModel):
    """Diagnostic view of a registered rollup schedule."""

    name: str
    spec: str
    timezone: str
    state: str
    next_fire_time: datetime | None
    last_fire_time: datetime | None
    fire_count: int
    description: str
