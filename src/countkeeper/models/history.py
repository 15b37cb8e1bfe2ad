# src/countkeeper/models/history.py
"""Bounded per-subject history logs (presence, avatar, name changes).

Every insert fires an ``after_insert`` hook that deletes whatever falls
beyond the log's cap. The hook runs on the flushing connection, so the
insert and the trim commit or roll back together and no reader ever sees
more than ``cap`` rows.

Ordering is ``changed_at DESC, id DESC``: among entries sharing a timestamp
the one inserted last counts as the most recent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, ForeignKey, Index, LargeBinary, String, Text, delete, event, select
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Mapped, Mapper, mapped_column

from countkeeper.core.errors import ConfigurationError
from countkeeper.core.settings import settings
from countkeeper.db.session import Base
from countkeeper.db.time import utcnow
from countkeeper.db.types import BigIntPK, UTCDateTime

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LogPolicy:
    """Retention policy for a single log type."""

    cap: int
    dedup: bool = False


_DEDUP_LOGS = frozenset({"avatar", "name"})

LOG_POLICIES: dict[str, LogPolicy] = {
    log_type: LogPolicy(cap=cap, dedup=log_type in _DEDUP_LOGS)
    for log_type, cap in settings.history_caps.items()
}


def policy_for(log_type: str) -> LogPolicy:
    """Return the retention policy for ``log_type``."""
    try:
        return LOG_POLICIES[log_type]
    except KeyError as exc:
        raise ConfigurationError(f"unknown history log type {log_type!r}") from exc


class HistoryEntry(Base):
    """One entry of a subject's bounded history log."""

    __tablename__ = "history_entry"
    __table_args__ = (
        Index("ix_history_entry_subject_log", "subject_id", "log_type", "changed_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    subject_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("subject.id", ondelete="CASCADE"),
        nullable=False,
    )
    log_type: Mapped[str] = mapped_column(String(32), nullable=False)
    value: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    # MIME type for binary payloads such as avatars.
    content_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    changed_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    @property
    def text(self) -> str:
        """Return the value decoded as UTF-8 for textual logs."""
        return self.value.decode("utf-8")


def trim_history(connection: Connection, subject_id: int, log_type: str, cap: int) -> int:
    """Delete entries beyond the ``cap`` most recent for one subject's log."""
    table = HistoryEntry.__table__
    keep = (
        select(table.c.id)
        .where(table.c.subject_id == subject_id, table.c.log_type == log_type)
        .order_by(table.c.changed_at.desc(), table.c.id.desc())
        .limit(cap)
    )
    result = connection.execute(
        delete(table).where(
            table.c.subject_id == subject_id,
            table.c.log_type == log_type,
            table.c.id.not_in(keep),
        )
    )
    return result.rowcount or 0


@event.listens_for(HistoryEntry, "after_insert")
def _enforce_cap(mapper: Mapper[Any], connection: Connection, target: HistoryEntry) -> None:
    policy = policy_for(target.log_type)
    removed = trim_history(connection, target.subject_id, target.log_type, policy.cap)
    if removed:
        logger.debug(
            "Trimmed %d %s entries for subject %d", removed, target.log_type, target.subject_id
        )
