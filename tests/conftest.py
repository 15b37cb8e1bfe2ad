# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Generator, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ROLLUP_ENABLED", "true")

from countkeeper.core.calendar import OffsetCalendar
from countkeeper.db.session import Base, enable_sqlite_foreign_keys
from countkeeper.db.session import get_db as app_get_session
from countkeeper.main import app as fastapi_app
from countkeeper.models import Scope, Subject

TEST_DB_URL = "sqlite://"

SUBJECT_ID = 158750270779867136
OTHER_SUBJECT_ID = 218475863293526016
SCOPE_ID = 302094807046684672


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> Iterator[sessionmaker[Session]]:
    factory = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    try:
        yield factory
    finally:
        # Services commit on their own, so wipe every table between tests.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def calendar() -> OffsetCalendar:
    return OffsetCalendar(offset_hours=8)


@pytest.fixture()
def subject(db_session: Session) -> Subject:
    """Persist the primary counted subject."""
    row = Subject(id=SUBJECT_ID)
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture()
def other_subject(db_session: Session) -> Subject:
    row = Subject(id=OTHER_SUBJECT_ID)
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture()
def scope(db_session: Session) -> Scope:
    """Persist the scope events are counted in."""
    row = Scope(id=SCOPE_ID)
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def client(app: FastAPI, override_session_dependency: None) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client
