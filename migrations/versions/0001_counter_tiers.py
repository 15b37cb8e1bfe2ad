"""counter tiers and bounded history

Revision ID: 0001
Revises:
Create Date: 2026-10-16 09:00:00.000000

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from countkeeper.core.settings import settings

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SCHEMA = settings.database_schema


def _fk(table: str) -> str:
    return f"{SCHEMA}.{table}.id" if SCHEMA else f"{table}.id"


def _counter_key_columns() -> list[sa.Column]:
    return [
        sa.Column("subject_id", sa.BigInteger(), sa.ForeignKey(_fk("subject"), ondelete="CASCADE"), nullable=False),
        sa.Column("scope_id", sa.BigInteger(), sa.ForeignKey(_fk("scope"), ondelete="CASCADE"), nullable=False),
        sa.Column("counter_type", sa.String(length=6), nullable=False),
        sa.Column("count", sa.BigInteger(), nullable=False, server_default="0"),
    ]


def upgrade() -> None:
    """Create identity, counter and history tables."""
    for name in ("subject", "scope"):
        op.create_table(
            name,
            sa.Column("id", sa.BigInteger(), autoincrement=False, nullable=False),
            sa.Column("banned", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.CheckConstraint("id > 0", name=f"ck_{name}_id_positive"),
            sa.PrimaryKeyConstraint("id"),
            schema=SCHEMA,
        )

    op.create_table(
        "fine_counter",
        *_counter_key_columns(),
        sa.Column("day_bucket", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("count >= 0", name="ck_fine_counter_count"),
        sa.PrimaryKeyConstraint("subject_id", "scope_id", "counter_type", "day_bucket"),
        schema=SCHEMA,
    )
    op.create_index("ix_fine_counter_day_bucket", "fine_counter", ["day_bucket"], schema=SCHEMA)

    op.create_table(
        "medium_counter",
        *_counter_key_columns(),
        sa.Column("month_bucket", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("count >= 0", name="ck_medium_counter_count"),
        sa.PrimaryKeyConstraint("subject_id", "scope_id", "counter_type", "month_bucket"),
        schema=SCHEMA,
    )
    op.create_index("ix_medium_counter_month_bucket", "medium_counter", ["month_bucket"], schema=SCHEMA)

    op.create_table(
        "total_counter",
        *_counter_key_columns(),
        sa.CheckConstraint("count >= 0", name="ck_total_counter_count"),
        sa.PrimaryKeyConstraint("subject_id", "scope_id", "counter_type"),
        schema=SCHEMA,
    )

    op.create_table(
        "history_entry",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), autoincrement=True, nullable=False),
        sa.Column("subject_id", sa.BigInteger(), sa.ForeignKey(_fk("subject"), ondelete="CASCADE"), nullable=False),
        sa.Column("log_type", sa.String(length=32), nullable=False),
        sa.Column("value", sa.LargeBinary(), nullable=False),
        sa.Column("content_type", sa.Text(), nullable=True),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_history_entry_subject_log",
        "history_entry",
        ["subject_id", "log_type", "changed_at"],
        schema=SCHEMA,
    )


def downgrade() -> None:
    """Drop everything created by :func:`upgrade`."""
    op.drop_index("ix_history_entry_subject_log", table_name="history_entry", schema=SCHEMA)
    op.drop_table("history_entry", schema=SCHEMA)
    op.drop_table("total_counter", schema=SCHEMA)
    op.drop_index("ix_medium_counter_month_bucket", table_name="medium_counter", schema=SCHEMA)
    op.drop_table("medium_counter", schema=SCHEMA)
    op.drop_index("ix_fine_counter_day_bucket", table_name="fine_counter", schema=SCHEMA)
    op.drop_table("fine_counter", schema=SCHEMA)
    op.drop_table("scope", schema=SCHEMA)
    op.drop_table("subject", schema=SCHEMA)
