"""System diagnostics endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from countkeeper.core.settings import settings
from countkeeper.db.session import get_db
from countkeeper.schemas.score import ScheduleRead
from countkeeper.services.scheduler import Cron

router = APIRouter(prefix="/system", tags=["system"])

SessionDep = Annotated[Session, Depends(get_db)]


@router.get("/schedules", response_model=list[ScheduleRead])
async def list_schedules(request: Request) -> list[ScheduleRead]:
    """Describe the registered rollup schedules and their next firing."""
    schedules: dict[str, Cron] = getattr(request.app.state, "schedules", None) or {}
    return [
        ScheduleRead(
            name=name,
            spec=cron.spec,
            timezone=cron.zone.name,
            state=cron.state.value,
            next_fire_time=cron.next_fire_time,
            last_fire_time=cron.last_fire_time,
            fire_count=cron.fire_count,
            description=repr(cron),
        )
        for name, cron in schedules.items()
    ]


@router.get("/health")
async def get_system_health(db: SessionDep) -> dict[str, object]:
    """Report database connectivity and application version."""
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as exc:
        database = f"error: {exc.__class__.__name__}"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "database": database,
        "version": settings.app_version,
        "rollups_enabled": settings.rollup_enabled,
    }
