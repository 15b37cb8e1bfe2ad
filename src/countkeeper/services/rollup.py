"""Tier promotion: daily counts into months, monthly counts into the total.

A rollup is one transaction that deletes the source rows of a window with
``DELETE ... RETURNING``, sums exactly the rows it removed and upsert-adds
the sums into the next tier. Because the moved mass is whatever the delete
returned, a concurrent increment either lands before the delete (and is
moved) or after it (and creates a fresh row for the next run); it is never
lost and never counted twice. Re-running a consumed window deletes nothing
and therefore adds nothing.

There is no yearly tier: the ``year`` rollup folds the previous year's
monthly rows straight into the all-time total.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import delete, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from countkeeper.core.calendar import OffsetCalendar, default_calendar, require_aware
from countkeeper.core.errors import ConfigurationError, translate_store_error
from countkeeper.core.settings import settings
from countkeeper.db.session import SessionLocal
from countkeeper.db.time import utcnow
from countkeeper.models import FineCounter, MediumCounter, TotalCounter
from countkeeper.services.counter_store import upsert_add

__all__ = ["PERIODS", "RollupAggregator", "RollupResult", "RollupWindow", "rollup_window"]

logger = logging.getLogger(__name__)

PERIODS: tuple[str, ...] = ("month", "year")


@dataclass(frozen=True, slots=True)
class RollupWindow:
    """Half-open interval ``[start, end)`` consumed by one rollup."""

    period: str
    start: datetime
    end: datetime


@dataclass(frozen=True, slots=True)
class RollupResult:
    """Summary of a completed rollup transaction."""

    window: RollupWindow
    groups: int
    rows_deleted: int
    mass: int
    backlog_rows: int = 0

    @property
    def noop(self) -> bool:
        return self.rows_deleted == 0


def rollup_window(period: str, now: datetime, calendar: OffsetCalendar | None = None) -> RollupWindow:
    """Return the previous completed month or year relative to ``now``."""
    calendar = calendar or default_calendar()
    if period == "month":
        end = calendar.month_start(now)
        return RollupWindow(period, calendar.add_months(end, -1), end)
    if period == "year":
        end = calendar.year_start(now)
        return RollupWindow(period, calendar.add_years(end, -1), end)
    raise ConfigurationError(f"invalid aggregation period {period!r}; choose 'month' or 'year'")


class RollupAggregator:
    """Run month and year rollups as all-or-nothing transactions."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        *,
        calendar: OffsetCalendar | None = None,
        timeout_seconds: float | None = None,
        sweep_backlog: bool | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.calendar = calendar or default_calendar()
        self.timeout_seconds = timeout_seconds or settings.rollup_timeout_seconds
        self.sweep_backlog = settings.rollup_sweep_backlog if sweep_backlog is None else sweep_backlog

    def aggregate(self, period_token: str, now: datetime | None = None) -> RollupResult:
        """Promote the previous completed ``period_token`` into the next tier.

        Args:
            period_token: ``"month"`` (fine -> medium) or ``"year"`` (medium -> total).
            now: Evaluation time; defaults to the current UTC time.

        Raises:
            ConfigurationError: Unknown period token. Raised before any transaction starts.
            TransientStoreError: Lock timeout or connection loss; nothing was changed.
            IntegrityViolation: A destination write violated a constraint; nothing was changed.
        """
        if period_token not in PERIODS:
            raise ConfigurationError(
                f"invalid aggregation period {period_token!r}; choose 'month' or 'year'"
            )
        window = rollup_window(period_token, require_aware(now) if now else utcnow(), self.calendar)

        with self.session_factory() as db:
            try:
                with db.begin():
                    self._apply_timeout(db)
                    if period_token == "month":
                        result = self._roll_month(db, window)
                    else:
                        result = self._roll_year(db, window)
            except DBAPIError as exc:
                error = translate_store_error(exc)
                logger.warning("Rollup %s for %s aborted: %s", period_token, window.start, error)
                raise error from exc

        logger.info(
            "Rollup %s [%s, %s): moved %d from %d rows into %d groups (%d backlog rows)",
            period_token,
            window.start.isoformat(),
            window.end.isoformat(),
            result.mass,
            result.rows_deleted,
            result.groups,
            result.backlog_rows,
        )
        return result

    def _apply_timeout(self, db: Session) -> None:
        if db.get_bind().dialect.name != "postgresql":
            return
        millis = max(1, int(self.timeout_seconds * 1000))
        db.execute(text(f"SET LOCAL statement_timeout = {millis}"))
        db.execute(text(f"SET LOCAL lock_timeout = {millis}"))

    def _roll_month(self, db: Session, window: RollupWindow) -> RollupResult:
        table = FineCounter.__table__
        stmt = delete(table).where(table.c.day_bucket < window.end)
        if not self.sweep_backlog:
            stmt = stmt.where(table.c.day_bucket >= window.start)
        removed = db.execute(
            stmt.returning(
                table.c.subject_id,
                table.c.scope_id,
                table.c.counter_type,
                table.c.day_bucket,
                table.c["count"],
            )
        ).all()

        sums: dict[tuple[Any, ...], int] = defaultdict(int)
        backlog = 0
        for subject_id, scope_id, counter_type, day_bucket, count in removed:
            if day_bucket < window.start:
                backlog += 1
                month_bucket = self.calendar.month_start(day_bucket)
            else:
                month_bucket = window.start
            sums[(subject_id, scope_id, counter_type, month_bucket)] += count

        upsert_add(
            db,
            MediumCounter,
            [
                {
                    "subject_id": subject_id,
                    "scope_id": scope_id,
                    "counter_type": counter_type,
                    "month_bucket": month_bucket,
                    "count": count,
                }
                for (subject_id, scope_id, counter_type, month_bucket), count in sums.items()
            ],
        )
        return RollupResult(window, len(sums), len(removed), sum(sums.values()), backlog)

    def _roll_year(self, db: Session, window: RollupWindow) -> RollupResult:
        table = MediumCounter.__table__
        stmt = delete(table).where(table.c.month_bucket < window.end)
        if not self.sweep_backlog:
            stmt = stmt.where(table.c.month_bucket >= window.start)
        removed = db.execute(
            stmt.returning(
                table.c.subject_id,
                table.c.scope_id,
                table.c.counter_type,
                table.c.month_bucket,
                table.c["count"],
            )
        ).all()

        sums: dict[tuple[Any, ...], int] = defaultdict(int)
        backlog = 0
        for subject_id, scope_id, counter_type, month_bucket, count in removed:
            if month_bucket < window.start:
                backlog += 1
            sums[(subject_id, scope_id, counter_type)] += count

        upsert_add(
            db,
            TotalCounter,
            [
                {
                    "subject_id": subject_id,
                    "scope_id": scope_id,
                    "counter_type": counter_type,
                    "count": count,
                }
                for (subject_id, scope_id, counter_type), count in sums.items()
            ],
        )
        return RollupResult(window, len(sums), len(removed), sum(sums.values()), backlog)
