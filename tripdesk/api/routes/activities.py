"""Activity lookup endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ..deps import AuthContext, get_auth_context, get_db

router = APIRouter(prefix="/activities", tags=["activities"])


@router.get("/{activity_id}", response_model=schemas.Activity)
def get_activity(
    activity_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> models.Activity:
    activity = crud.get_activity(db, activity_id)
    if not activity or activity.agency_id != auth.agency_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Activity not found")
    return activity


@router.get("/{activity_id}/details")
def get_activity_details(
    activity_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> dict:
    activity = get_activity(activity_id, db, auth)
    return crud.get_activity_details(db, activity) or {}
