"""Named time-bucket scores read across the counter tiers."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import and_, case, func, select
from sqlalchemy.orm import Session

from countkeeper.core.calendar import OffsetCalendar, default_calendar, require_aware
from countkeeper.core.errors import ConfigurationError
from countkeeper.core.settings import settings
from countkeeper.db.time import utcnow
from countkeeper.models import COUNTER_TYPES, FineCounter, MediumCounter, TotalCounter

__all__ = ["BUCKETS", "BUCKET_TIERS", "Score", "ScoreEngine", "bucket_bounds"]

BUCKETS: tuple[str, ...] = (
    "today",
    "yesterday",
    "this_week",
    "last_week",
    "this_month",
    "last_month",
    "this_year",
    "last_year",
    "all_time",
)

# Which tiers can hold data for each bucket. Day and week buckets are only
# resolvable from daily rows; month-aligned buckets may already have been
# rolled into the monthly tier, and the total tier only feeds all_time.
BUCKET_TIERS: dict[str, tuple[str, ...]] = {
    "today": ("fine",),
    "yesterday": ("fine",),
    "this_week": ("fine",),
    "last_week": ("fine",),
    "this_month": ("fine", "medium"),
    "last_month": ("fine", "medium"),
    "this_year": ("fine", "medium"),
    "last_year": ("fine", "medium"),
    "all_time": ("fine", "medium", "total"),
}


@dataclass(frozen=True, slots=True)
class Score:
    today: int = 0
    yesterday: int = 0
    this_week: int = 0
    last_week: int = 0
    this_month: int = 0
    last_month: int = 0
    this_year: int = 0
    last_year: int = 0
    all_time: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def bucket_bounds(
    now: datetime,
    calendar: OffsetCalendar | None = None,
    epoch: datetime | None = None,
) -> dict[str, tuple[datetime, datetime]]:
    """Return the half-open ``[start, end)`` interval of every bucket at ``now``."""
    calendar = calendar or default_calendar()
    epoch = require_aware(epoch or settings.all_time_epoch)
    day = calendar.day_start(now)
    week = calendar.week_start(now)
    month = calendar.month_start(now)
    year = calendar.year_start(now)
    one_day = timedelta(days=1)
    one_week = timedelta(weeks=1)
    return {
        "today": (day, day + one_day),
        "yesterday": (day - one_day, day),
        "this_week": (week, week + one_week),
        "last_week": (week - one_week, week),
        "this_month": (month, calendar.add_months(month, 1)),
        "last_month": (calendar.add_months(month, -1), month),
        "this_year": (year, calendar.add_years(year, 1)),
        "last_year": (calendar.add_years(year, -1), year),
        "all_time": (epoch, day + one_day),
    }


class ScoreEngine:
    """Compute :class:`Score` buckets for a (subject, scope) pair."""

    def __init__(self, db: Session, calendar: OffsetCalendar | None = None) -> None:
        self.db = db
        self.calendar = calendar or default_calendar()

    @staticmethod
    def _bucket_sums(model: Any, column: Any, bounds: dict[str, tuple[datetime, datetime]], tier: str) -> list[Any]:
        names = [name for name in BUCKETS if tier in BUCKET_TIERS[name]]
        return [
            func.coalesce(
                func.sum(
                    case(
                        (and_(column >= bounds[name][0], column < bounds[name][1]), model.count),
                        else_=0,
                    )
                ),
                0,
            ).label(name)
            for name in names
        ]

    def get_score(
        self,
        subject_id: int,
        scope_id: int,
        now: datetime | None = None,
        counter_type: str | None = None,
    ) -> Score:
        """Return the nine named buckets, optionally for a single counter type."""
        if counter_type is not None and counter_type not in COUNTER_TYPES:
            raise ConfigurationError(f"unknown counter type {counter_type!r}")

        bounds = bucket_bounds(require_aware(now) if now else utcnow(), self.calendar)
        totals = dict.fromkeys(BUCKETS, 0)

        for tier, model, column in (
            ("fine", FineCounter, FineCounter.day_bucket),
            ("medium", MediumCounter, MediumCounter.month_bucket),
        ):
            stmt = select(*self._bucket_sums(model, column, bounds, tier)).where(
                model.subject_id == subject_id,
                model.scope_id == scope_id,
            )
            if counter_type is not None:
                stmt = stmt.where(model.counter_type == counter_type)
            row = self.db.execute(stmt).one()
            for name, value in row._mapping.items():
                totals[name] += int(value or 0)

        total_stmt = select(func.coalesce(func.sum(TotalCounter.count), 0)).where(
            TotalCounter.subject_id == subject_id,
            TotalCounter.scope_id == scope_id,
        )
        if counter_type is not None:
            total_stmt = total_stmt.where(TotalCounter.counter_type == counter_type)
        totals["all_time"] += int(self.db.execute(total_stmt).scalar_one())

        return Score(**totals)
