# src/countkeeper/main.py
"""Main entry point for the countkeeper service."""

from __future__ import annotations

import logging

from fastapi import FastAPI

from countkeeper.api.v1 import scores_router, system_router
from countkeeper.core.logging import configure_logging
from countkeeper.core.settings import settings
from countkeeper.jobs import register_rollups
from countkeeper.services.scheduler import Cron

logger = logging.getLogger(__name__)

app = FastAPI(
    title="countkeeper",
    description="Tiered event counters with scheduled rollups",
    version=settings.app_version,
)

app.include_router(scores_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging()
    if settings.rollup_enabled:
        app.state.schedules = register_rollups()
    else:
        logger.info("Rollup schedules disabled")
        app.state.schedules = {}


@app.on_event("shutdown")
async def on_shutdown() -> None:
    schedules: dict[str, Cron] = getattr(app.state, "schedules", None) or {}
    for cron in schedules.values():
        cron.stop()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("countkeeper.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
