"""Application settings and configuration.

This module defines all configuration options for the countkeeper service.
Settings are loaded from environment variables with sensible defaults.
"""

from datetime import UTC, datetime

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="countkeeper", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./countkeeper.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    database_schema: str | None = Field(default=None, alias="DATABASE_SCHEMA")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Calendar: days run from DAY_OFFSET_HOURS UTC to the same hour next day
    day_offset_hours: int = Field(default=8, ge=0, le=23, alias="DAY_OFFSET_HOURS")
    all_time_epoch: datetime = Field(
        default=datetime(2018, 1, 1, tzinfo=UTC),
        alias="ALL_TIME_EPOCH",
    )

    # Bounded history caps per log type
    presence_history_cap: int = Field(default=2, ge=1, alias="PRESENCE_HISTORY_CAP")
    avatar_history_cap: int = Field(default=12, ge=1, alias="AVATAR_HISTORY_CAP")
    name_history_cap: int = Field(default=24, ge=1, alias="NAME_HISTORY_CAP")

    # Rollup scheduling
    rollup_enabled: bool = Field(default=True, alias="ROLLUP_ENABLED")
    rollup_timezone: str = Field(default="UTC", alias="ROLLUP_TIMEZONE")
    monthly_rollup_cron: str = Field(default="5 8 1 * *", alias="MONTHLY_ROLLUP_CRON")
    yearly_rollup_cron: str = Field(default="10 8 1 1 *", alias="YEARLY_ROLLUP_CRON")
    rollup_timeout_seconds: float = Field(default=60.0, gt=0, alias="ROLLUP_TIMEOUT_SECONDS")
    rollup_sweep_backlog: bool = Field(default=True, alias="ROLLUP_SWEEP_BACKLOG")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @field_validator("all_time_epoch")
    @classmethod
    def _epoch_is_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling such as Alembic."""
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def history_caps(self) -> dict[str, int]:
        """Return the bounded history caps keyed by log type."""
        return {
            "presence": self.presence_history_cap,
            "avatar": self.avatar_history_cap,
            "name": self.name_history_cap,
        }


settings = Settings()
