"""Database session configuration."""

from __future__ import annotations

from collections.abc import Generator
from typing import Any

from sqlalchemy import MetaData, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from countkeeper.core.settings import settings


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""

    metadata = MetaData(schema=settings.database_schema)


# Ensure model modules are imported so that metadata is populated when create_all runs.
import countkeeper.models  # noqa: E402,F401


def _sqlite_connect_args(url: str) -> dict[str, Any]:
    if not url.startswith("sqlite"):
        return {}
    return {"check_same_thread": False, "timeout": settings.rollup_timeout_seconds}


def enable_sqlite_foreign_keys(target: Engine) -> None:
    """Turn on FK enforcement so ON DELETE CASCADE behaves like Postgres."""
    if target.dialect.name != "sqlite":
        return

    @event.listens_for(target, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record) -> None:  # pragma: no cover - driver hook
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_engine(
    settings.effective_database_url,
    pool_pre_ping=True,
    echo=settings.sql_debug,
    connect_args=_sqlite_connect_args(settings.effective_database_url),
)
enable_sqlite_foreign_keys(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a database session for dependency injection."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables() -> None:
    """Create all database tables."""
    Base.metadata.create_all(bind=engine)
