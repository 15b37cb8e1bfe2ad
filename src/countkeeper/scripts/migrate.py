# src/countkeeper/scripts/migrate.py
"""Apply Alembic migrations to the configured database."""
from __future__ import annotations

import os
import sys

from alembic import command
from alembic.config import Config

from countkeeper.core.settings import settings

_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..", ".."))


def alembic_config(url: str | None = None) -> Config:
    """Build an Alembic config from the project's alembic.ini."""
    cfg = Config(os.path.join(_PROJECT_ROOT, "alembic.ini"))
    cfg.set_main_option("script_location", os.path.join(_PROJECT_ROOT, "migrations"))
    cfg.set_main_option("sqlalchemy.url", url or settings.database_url_sync)
    return cfg


def run_upgrade_head(url: str | None = None) -> None:
    command.upgrade(alembic_config(url), "head")


if __name__ == "__main__":
    run_upgrade_head(sys.argv[1] if len(sys.argv) > 1 else None)
