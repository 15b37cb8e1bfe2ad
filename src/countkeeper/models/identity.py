# src/countkeeper/models/identity.py
"""Subject and scope identity rows referenced by every counter table.

Identity rows are owned by the external identity store; they are declared
here so that counters and history entries can cascade on removal.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from countkeeper.db.session import Base
from countkeeper.db.time import utcnow
from countkeeper.db.types import UTCDateTime


class Subject(Base):
    """A counted actor, keyed by its platform snowflake."""

    __tablename__ = "subject"
    __table_args__ = (CheckConstraint("id > 0", name="ck_subject_id_positive"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    banned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class Scope(Base):
    """A container (guild, channel) events are counted within."""

    __tablename__ = "scope"
    __table_args__ = (CheckConstraint("id > 0", name="ck_scope_id_positive"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    banned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
