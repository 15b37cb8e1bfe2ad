"""Tests for bounded history logs."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from countkeeper.core.errors import ConfigurationError, IntegrityViolation
from countkeeper.models import LOG_POLICIES, HistoryEntry, Subject, policy_for
from countkeeper.services.retention import HistoryItem, RetentionEnforcer

BASE = datetime(2026, 3, 18, 12, 0, tzinfo=UTC)


def _count(db: Session, subject_id: int, log_type: str) -> int:
    return db.execute(
        select(func.count())
        .select_from(HistoryEntry)
        .where(HistoryEntry.subject_id == subject_id, HistoryEntry.log_type == log_type)
    ).scalar_one()


def test_default_policies() -> None:
    assert LOG_POLICIES["presence"].cap == 2
    assert LOG_POLICIES["avatar"].cap == 12
    assert LOG_POLICIES["name"].cap == 24
    assert not LOG_POLICIES["presence"].dedup
    assert LOG_POLICIES["avatar"].dedup and LOG_POLICIES["name"].dedup


def test_unknown_log_type(db_session: Session, subject: Subject) -> None:
    with pytest.raises(ConfigurationError):
        policy_for("nickname")
    with pytest.raises(ConfigurationError):
        RetentionEnforcer(db_session).on_insert(subject.id, HistoryItem("nickname", "x"))


@pytest.mark.parametrize("log_type,inserts", [("presence", 5), ("name", 30), ("avatar", 3)])
def test_log_never_exceeds_cap(db_session: Session, subject: Subject, log_type: str, inserts: int) -> None:
    enforcer = RetentionEnforcer(db_session)
    cap = LOG_POLICIES[log_type].cap

    for i in range(inserts):
        enforcer.on_insert(subject.id, HistoryItem(log_type, f"value-{i}", changed_at=BASE + timedelta(minutes=i)))
        assert _count(db_session, subject.id, log_type) == min(i + 1, cap)

    kept = [entry.text for entry in enforcer.latest(subject.id, log_type)]
    expected = [f"value-{i}" for i in reversed(range(inserts))][:cap]
    assert kept == expected


def test_presence_keeps_repeated_values(db_session: Session, subject: Subject) -> None:
    enforcer = RetentionEnforcer(db_session)

    first = enforcer.on_insert(subject.id, HistoryItem("presence", "online", changed_at=BASE))
    second = enforcer.on_insert(subject.id, HistoryItem("presence", "online", changed_at=BASE + timedelta(seconds=1)))

    assert first is not None and second is not None
    assert _count(db_session, subject.id, "presence") == 2


def test_avatar_dedups_against_latest_only(db_session: Session, subject: Subject) -> None:
    enforcer = RetentionEnforcer(db_session)
    png_a = b"\x89PNG-a"
    png_b = b"\x89PNG-b"

    assert enforcer.on_insert(subject.id, HistoryItem("avatar", png_a, BASE, "image/png")) is not None
    assert enforcer.on_insert(subject.id, HistoryItem("avatar", png_a, BASE + timedelta(minutes=1))) is None
    assert enforcer.on_insert(subject.id, HistoryItem("avatar", png_b, BASE + timedelta(minutes=2))) is not None
    assert enforcer.on_insert(subject.id, HistoryItem("avatar", png_a, BASE + timedelta(minutes=3))) is not None

    values = [entry.value for entry in enforcer.latest(subject.id, "avatar")]
    assert values == [png_a, png_b, png_a]
    assert enforcer.latest(subject.id, "avatar")[-1].content_type == "image/png"


def test_name_dedup_compares_encoded_text(db_session: Session, subject: Subject) -> None:
    enforcer = RetentionEnforcer(db_session)

    enforcer.on_insert(subject.id, HistoryItem("name", "Ünïcode", BASE))
    assert enforcer.on_insert(subject.id, HistoryItem("name", "Ünïcode".encode("utf-8"), BASE)) is None


def test_equal_timestamps_keep_last_inserted(db_session: Session, subject: Subject) -> None:
    enforcer = RetentionEnforcer(db_session)

    for value in ("first", "second", "third"):
        enforcer.on_insert(subject.id, HistoryItem("presence", value, changed_at=BASE))

    assert [entry.text for entry in enforcer.latest(subject.id, "presence")] == ["third", "second"]


def test_backdated_entry_beyond_cap_is_trimmed(db_session: Session, subject: Subject) -> None:
    enforcer = RetentionEnforcer(db_session)
    enforcer.on_insert(subject.id, HistoryItem("presence", "new", changed_at=BASE))
    enforcer.on_insert(subject.id, HistoryItem("presence", "newer", changed_at=BASE + timedelta(hours=1)))

    stored = enforcer.on_insert(subject.id, HistoryItem("presence", "ancient", changed_at=BASE - timedelta(days=30)))

    assert stored is None
    assert [entry.text for entry in enforcer.latest(subject.id, "presence")] == ["newer", "new"]


def test_returned_entries_readable_with_expiring_session(engine: Engine, subject: Subject) -> None:
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        enforcer = RetentionEnforcer(session)
        enforcer.on_insert(subject.id, HistoryItem("presence", "new", changed_at=BASE))
        newer = enforcer.on_insert(subject.id, HistoryItem("presence", "newer", changed_at=BASE + timedelta(hours=1)))
        ancient = enforcer.on_insert(
            subject.id, HistoryItem("presence", "ancient", changed_at=BASE - timedelta(days=30))
        )

        assert newer is not None
        assert newer.value == b"newer"
        assert ancient is None
        assert [entry.text for entry in enforcer.latest(subject.id, "presence")] == ["newer", "new"]
    finally:
        session.close()


def test_logs_are_independent_per_subject(db_session: Session, subject: Subject, other_subject: Subject) -> None:
    enforcer = RetentionEnforcer(db_session)
    for i in range(3):
        enforcer.on_insert(subject.id, HistoryItem("presence", f"a{i}", BASE + timedelta(minutes=i)))
    enforcer.on_insert(other_subject.id, HistoryItem("presence", "b0", BASE))

    assert _count(db_session, subject.id, "presence") == 2
    assert _count(db_session, other_subject.id, "presence") == 1


def test_latest_limit(db_session: Session, subject: Subject) -> None:
    enforcer = RetentionEnforcer(db_session)
    for i in range(5):
        enforcer.on_insert(subject.id, HistoryItem("name", f"n{i}", BASE + timedelta(minutes=i)))

    assert [entry.text for entry in enforcer.latest(subject.id, "name", limit=2)] == ["n4", "n3"]


def test_unknown_subject(db_session: Session) -> None:
    with pytest.raises(IntegrityViolation):
        RetentionEnforcer(db_session).on_insert(999, HistoryItem("presence", "online", BASE))


def test_naive_changed_at_rejected(db_session: Session, subject: Subject) -> None:
    with pytest.raises(ConfigurationError):
        RetentionEnforcer(db_session).on_insert(
            subject.id, HistoryItem("presence", "online", changed_at=datetime(2026, 3, 18))
        )


def test_default_changed_at_is_now(db_session: Session, subject: Subject) -> None:
    entry = RetentionEnforcer(db_session).on_insert(subject.id, HistoryItem("presence", "idle"))
    assert entry is not None
    assert entry.changed_at.tzinfo is not None


def test_removing_subject_clears_history(db_session: Session, subject: Subject) -> None:
    enforcer = RetentionEnforcer(db_session)
    enforcer.on_insert(subject.id, HistoryItem("name", "someone", BASE))

    db_session.delete(subject)
    db_session.commit()

    assert _count(db_session, subject.id, "name") == 0
