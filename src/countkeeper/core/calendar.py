"""Offset-day calendar shared by counters, rollups and score queries.

A counting day does not start at UTC midnight: it starts ``offset_hours``
after it (08:00 UTC by default). Weeks, months and years are derived from
the same shifted clock, so every boundary used by the counter store, the
rollup windows and the score buckets lines up.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from countkeeper.core.errors import ConfigurationError
from countkeeper.core.settings import settings


def require_aware(value: datetime) -> datetime:
    """Return ``value`` converted to UTC, rejecting naive datetimes."""
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ConfigurationError(f"naive datetime {value!r}; timestamps must be timezone-aware")
    return value.astimezone(UTC)


@dataclass(frozen=True, slots=True)
class OffsetCalendar:
    """Calendar whose days begin ``offset_hours`` after UTC midnight."""

    offset_hours: int = 8

    @property
    def offset(self) -> timedelta:
        return timedelta(hours=self.offset_hours)

    def _shifted(self, value: datetime) -> datetime:
        return require_aware(value) - self.offset

    def _unshift(self, year: int, month: int, day: int) -> datetime:
        return datetime(year, month, day, tzinfo=UTC) + self.offset

    def day_start(self, value: datetime) -> datetime:
        shifted = self._shifted(value)
        return self._unshift(shifted.year, shifted.month, shifted.day)

    def week_start(self, value: datetime) -> datetime:
        """Monday of the ISO week containing ``value``."""
        shifted = self._shifted(value)
        day = self._unshift(shifted.year, shifted.month, shifted.day)
        return day - timedelta(days=shifted.weekday())

    def month_start(self, value: datetime) -> datetime:
        shifted = self._shifted(value)
        return self._unshift(shifted.year, shifted.month, 1)

    def year_start(self, value: datetime) -> datetime:
        shifted = self._shifted(value)
        return self._unshift(shifted.year, 1, 1)

    def add_months(self, month_start: datetime, months: int) -> datetime:
        """Move a month boundary by ``months`` (may be negative)."""
        shifted = self._shifted(month_start)
        index = shifted.year * 12 + (shifted.month - 1) + months
        return self._unshift(index // 12, index % 12 + 1, 1)

    def add_years(self, year_start: datetime, years: int) -> datetime:
        shifted = self._shifted(year_start)
        return self._unshift(shifted.year + years, 1, 1)


def default_calendar() -> OffsetCalendar:
    """Return the calendar configured through ``DAY_OFFSET_HOURS``."""
    return OffsetCalendar(offset_hours=settings.day_offset_hours)
