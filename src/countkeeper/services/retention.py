"""Append entries to bounded history logs.

Trimming itself is the ``after_insert`` hook on
:class:`~countkeeper.models.HistoryEntry`; this service adds the per-subject
write lock and the content dedup rule that must run before the insert.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from countkeeper.core.calendar import require_aware
from countkeeper.core.errors import IntegrityViolation, translate_store_error
from countkeeper.db.time import utcnow
from countkeeper.models import HistoryEntry, Subject, policy_for

__all__ = ["HistoryItem", "RetentionEnforcer"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class HistoryItem:
    """A value to append to a subject's history log."""

    log_type: str
    value: bytes | str
    changed_at: datetime | None = None
    content_type: str | None = None

    @property
    def payload(self) -> bytes:
        if isinstance(self.value, str):
            return self.value.encode("utf-8")
        return bytes(self.value)


class RetentionEnforcer:
    """Write side of the bounded history logs."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _latest_value(self, subject_id: int, log_type: str) -> bytes | None:
        return self.db.execute(
            select(HistoryEntry.value)
            .where(HistoryEntry.subject_id == subject_id, HistoryEntry.log_type == log_type)
            .order_by(HistoryEntry.changed_at.desc(), HistoryEntry.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def on_insert(self, subject_id: int, item: HistoryItem) -> HistoryEntry | None:
        """Append ``item`` to the subject's log; the log is trimmed in the same transaction.

        Returns:
            The stored entry, or ``None`` when nothing was kept: the log
            deduplicates and the value matches the most recent entry byte for
            byte, or ``changed_at`` is older than the ``cap`` most recent
            entries so the trim removed it straight away.
        """
        policy = policy_for(item.log_type)
        changed_at = require_aware(item.changed_at) if item.changed_at else utcnow()
        payload = item.payload

        try:
            # Serialise writers per subject so concurrent trims cannot miss each other's rows.
            locked = self.db.execute(
                select(Subject.id).where(Subject.id == subject_id).with_for_update()
            ).scalar_one_or_none()
            if locked is None:
                raise IntegrityViolation(f"subject {subject_id} does not exist")

            if policy.dedup and self._latest_value(subject_id, item.log_type) == payload:
                self.db.rollback()
                logger.debug("Skipped duplicate %s entry for subject %d", item.log_type, subject_id)
                return None

            entry = HistoryEntry(
                subject_id=subject_id,
                log_type=item.log_type,
                value=payload,
                content_type=item.content_type,
                changed_at=changed_at,
            )
            self.db.add(entry)
            self.db.flush()

            kept = self.db.execute(
                select(HistoryEntry.id).where(HistoryEntry.id == entry.id)
            ).scalar_one_or_none()
            if kept is None:
                # Backdated past the cap; the trim hook already removed it.
                self.db.rollback()
                logger.debug("Dropped backdated %s entry for subject %d", item.log_type, subject_id)
                return None

            self.db.commit()
        except IntegrityViolation:
            self.db.rollback()
            raise
        except DBAPIError as exc:
            self.db.rollback()
            raise translate_store_error(exc) from exc

        return entry

    def latest(self, subject_id: int, log_type: str, limit: int | None = None) -> list[HistoryEntry]:
        """Return the stored entries for one log, newest first."""
        policy_for(log_type)
        stmt = (
            select(HistoryEntry)
            .where(HistoryEntry.subject_id == subject_id, HistoryEntry.log_type == log_type)
            .order_by(HistoryEntry.changed_at.desc(), HistoryEntry.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.db.execute(stmt).scalars())
