# src/countkeeper/models/counters.py
"""The three counter tiers: daily (fine), monthly (medium) and all-time (total)."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from countkeeper.db.session import Base
from countkeeper.db.types import UTCDateTime

COUNTER_TYPES: tuple[str, ...] = ("COUNT", "HUNT", "BATTLE")


class _CounterKeyMixin:
    subject_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("subject.id", ondelete="CASCADE"),
        primary_key=True,
    )
    scope_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("scope.id", ondelete="CASCADE"),
        primary_key=True,
    )
    counter_type: Mapped[str] = mapped_column(String(6), primary_key=True)
    count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class FineCounter(_CounterKeyMixin, Base):
    """Per-day counts. Written on every increment, consumed by the month rollup."""

    __tablename__ = "fine_counter"
    __table_args__ = (
        CheckConstraint("count >= 0", name="ck_fine_counter_count"),
        Index("ix_fine_counter_day_bucket", "day_bucket"),
    )

    day_bucket: Mapped[datetime] = mapped_column(UTCDateTime, primary_key=True)


class MediumCounter(_CounterKeyMixin, Base):
    """Per-month sums produced by the month rollup, consumed by the year rollup."""

    __tablename__ = "medium_counter"
    __table_args__ = (
        CheckConstraint("count >= 0", name="ck_medium_counter_count"),
        Index("ix_medium_counter_month_bucket", "month_bucket"),
    )

    month_bucket: Mapped[datetime] = mapped_column(UTCDateTime, primary_key=True)


class TotalCounter(_CounterKeyMixin, Base):
    """Cumulative counts, only ever increased by the year rollup."""

    __tablename__ = "total_counter"
    __table_args__ = (CheckConstraint("count >= 0", name="ck_total_counter_count"),)
