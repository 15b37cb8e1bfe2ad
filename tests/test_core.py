"""Tests for settings, error translation and logging setup."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from countkeeper.core.errors import (
    CallbackError,
    ConfigurationError,
    CountkeeperError,
    IntegrityViolation,
    TransientStoreError,
    translate_store_error,
)
from countkeeper.core.logging import configure_logging
from countkeeper.core.settings import Settings
from countkeeper.services.scheduler import Cron


def test_settings_defaults() -> None:
    settings = Settings()
    assert settings.day_offset_hours == 8
    assert settings.all_time_epoch == datetime(2018, 1, 1, tzinfo=UTC)
    assert settings.history_caps == {"presence": 2, "avatar": 12, "name": 24}


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NAME_HISTORY_CAP", "5")
    monkeypatch.setenv("ALL_TIME_EPOCH", "2020-06-01T00:00:00")
    monkeypatch.setenv("TEST_DATABASE_URL", "sqlite:///./test.db")
    monkeypatch.setenv("USE_TEST_DATABASE", "true")

    settings = Settings()

    assert settings.history_caps["name"] == 5
    assert settings.all_time_epoch.tzinfo is UTC
    assert settings.effective_database_url == "sqlite:///./test.db"


def test_database_url_sync_swaps_async_driver() -> None:
    settings = Settings(DATABASE_URL="postgresql+asyncpg://u:p@db/counts")
    assert settings.database_url_sync == "postgresql+psycopg://u:p@db/counts"


def test_configuration_error_is_value_error() -> None:
    assert issubclass(ConfigurationError, ValueError)
    assert issubclass(ConfigurationError, CountkeeperError)


@pytest.mark.parametrize(
    "exc,expected",
    [
        (IntegrityError("INSERT", {}, Exception("FOREIGN KEY constraint failed")), IntegrityViolation),
        (OperationalError("DELETE", {}, Exception("canceling statement due to lock timeout")), TransientStoreError),
        (DBAPIError("SELECT", {}, Exception("lost"), connection_invalidated=True), TransientStoreError),
        (DBAPIError("SELECT", {}, Exception("odd")), CountkeeperError),
    ],
)
def test_translate_store_error(exc: DBAPIError, expected: type) -> None:
    translated = translate_store_error(exc)
    assert type(translated) is expected


def test_callback_error_names_job() -> None:
    def nightly() -> None:
        return None

    error = CallbackError(Cron("0 3 * * *", nightly), KeyError("x"))
    assert "nightly" in str(error)
    assert "0 3 * * *" in str(error)
    assert isinstance(error.original, KeyError)


def test_configure_logging_is_idempotent() -> None:
    configure_logging("DEBUG")
    configure_logging("DEBUG")

    logger = logging.getLogger("countkeeper")
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
