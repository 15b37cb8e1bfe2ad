"""Score query endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from countkeeper.core.errors import ConfigurationError
from countkeeper.db.session import get_db
from countkeeper.schemas.score import ScoreRead
from countkeeper.services.scores import ScoreEngine

router = APIRouter(prefix="/scores", tags=["scores"])

SessionDep = Annotated[Session, Depends(get_db)]


@router.get("/{subject_id}/{scope_id}", response_model=ScoreRead)
async def get_score(
    subject_id: int,
    scope_id: int,
    db: SessionDep,
    counter_type: Annotated[str | None, Query(max_length=6)] = None,
) -> ScoreRead:
    """Return the nine named time buckets for a subject within a scope.

    Args:
        subject_id: Counted subject identifier
        scope_id: Scope the events were counted in
        db: Database session
        counter_type: Optional counter type filter (COUNT, HUNT, BATTLE)

    Returns:
        Bucket counts reconciled across the daily, monthly and total tiers
    """
    try:
        score = ScoreEngine(db).get_score(subject_id, scope_id, counter_type=counter_type)
    except ConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return ScoreRead(subject_id=subject_id, scope_id=scope_id, counter_type=counter_type, **score.as_dict())
