"""Fine-tier counter writes and the shared upsert-add primitive."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from countkeeper.core.calendar import OffsetCalendar, default_calendar
from countkeeper.core.errors import ConfigurationError, translate_store_error
from countkeeper.db.session import Base
from countkeeper.models import COUNTER_TYPES, FineCounter

__all__ = ["CounterStore", "Increment", "upsert_add"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Increment:
    """A single counted event (or batch of ``delta`` events)."""

    subject_id: int
    scope_id: int
    counter_type: str
    timestamp: datetime
    delta: int = 1


def _dialect_insert(db: Session) -> Any:
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise ConfigurationError(f"upserts are not supported on the {dialect!r} dialect")
    return insert


def upsert_add(db: Session, model: type[Base], rows: Sequence[Mapping[str, Any]]) -> None:
    """Insert ``rows`` into ``model``, adding ``count`` onto existing keys.

    Runs as a single ``INSERT ... ON CONFLICT DO UPDATE`` so the
    read-modify-write happens inside the database and concurrent writers to
    the same key never lose an update.
    """
    if not rows:
        return

    table = model.__table__  # type: ignore[attr-defined]
    insert = _dialect_insert(db)
    stmt = insert(table).values(list(rows))
    stmt = stmt.on_conflict_do_update(
        index_elements=[column.name for column in table.primary_key.columns],
        set_={"count": table.c["count"] + stmt.excluded["count"]},
    )
    db.execute(stmt)


class CounterStore:
    """Increment daily counters keyed by (subject, scope, type, day)."""

    def __init__(self, db: Session, calendar: OffsetCalendar | None = None) -> None:
        self.db = db
        self.calendar = calendar or default_calendar()

    def _row(self, item: Increment) -> dict[str, Any]:
        if item.counter_type not in COUNTER_TYPES:
            raise ConfigurationError(f"unknown counter type {item.counter_type!r}")
        if not isinstance(item.delta, int) or item.delta <= 0:
            raise ConfigurationError(f"delta must be a positive integer, got {item.delta!r}")
        return {
            "subject_id": item.subject_id,
            "scope_id": item.scope_id,
            "counter_type": item.counter_type,
            "day_bucket": self.calendar.day_start(item.timestamp),
            "count": item.delta,
        }

    def increment(
        self,
        subject_id: int,
        scope_id: int,
        counter_type: str,
        timestamp: datetime,
        delta: int = 1,
    ) -> None:
        """Atomically add ``delta`` to the day bucket containing ``timestamp``."""
        self.increment_many([Increment(subject_id, scope_id, counter_type, timestamp, delta)])

    def increment_many(self, items: Iterable[Increment]) -> int:
        """Apply a batch of increments in one transaction.

        Duplicate keys inside the batch are summed first, since a single
        ``ON CONFLICT`` statement may not touch the same row twice.

        Returns:
            Number of distinct fine-tier keys written.
        """
        merged: dict[tuple[Any, ...], dict[str, Any]] = {}
        for item in items:
            row = self._row(item)
            key = (row["subject_id"], row["scope_id"], row["counter_type"], row["day_bucket"])
            if key in merged:
                merged[key]["count"] += row["count"]
            else:
                merged[key] = row

        if not merged:
            return 0

        try:
            upsert_add(self.db, FineCounter, list(merged.values()))
            self.db.commit()
        except DBAPIError as exc:
            self.db.rollback()
            raise translate_store_error(exc) from exc

        logger.debug("Incremented %d fine counter keys", len(merged))
        return len(merged)
