"""Logging setup for the service entry points."""

from __future__ import annotations

import logging

from countkeeper.core.settings import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Install a single stream handler on the ``countkeeper`` logger."""
    root = logging.getLogger("countkeeper")
    root.setLevel((level or settings.log_level).upper())
    if not any(getattr(handler, "_countkeeper", False) for handler in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._countkeeper = True  # type: ignore[attr-defined]
        root.addHandler(handler)
