"""Itinerary, day and activity endpoints."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from ... import components, crud, models, schemas, templates
from ...exceptions import TripdeskError
from ..deps import AuthContext, get_auth_context, get_db, http_error

router = APIRouter(prefix="/itineraries", tags=["itineraries"])


def _get_itinerary_or_404(db: Session, itinerary_id: int, auth: AuthContext) -> models.Itinerary:
    itinerary = crud.get_itinerary(db, itinerary_id)
    if not itinerary or itinerary.trip.agency_id != auth.agency_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Itinerary not found")
    return itinerary


@router.get("/{itinerary_id}", response_model=schemas.Itinerary)
def get_itinerary(
    itinerary_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> models.Itinerary:
    return _get_itinerary_or_404(db, itinerary_id, auth)


@router.delete("/{itinerary_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_itinerary(
    itinerary_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> Response:
    itinerary = _get_itinerary_or_404(db, itinerary_id, auth)
    crud.delete_itinerary(db, itinerary)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{itinerary_id}/days", response_model=List[schemas.ItineraryDay])
def list_days(
    itinerary_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> List[models.ItineraryDay]:
    itinerary = _get_itinerary_or_404(db, itinerary_id, auth)
    return list(itinerary.days)


@router.post(
    "/{itinerary_id}/days",
    response_model=schemas.ItineraryDay,
    status_code=status.HTTP_201_CREATED,
)
def add_day(
    itinerary_id: int,
    day_in: schemas.ItineraryDayCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> models.ItineraryDay:
    itinerary = _get_itinerary_or_404(db, itinerary_id, auth)
    day = crud.add_day(db, itinerary, day_in)
    db.refresh(day)
    return day


@router.post(
    "/{itinerary_id}/activities",
    response_model=schemas.Activity,
    status_code=status.HTTP_201_CREATED,
)
def create_activity(
    itinerary_id: int,
    activity_in: schemas.ActivityCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> models.Activity:
    itinerary = _get_itinerary_or_404(db, itinerary_id, auth)
    if activity_in.itinerary_day_id is not None:
        day = crud.get_day(db, activity_in.itinerary_day_id)
        if not day or day.itinerary_id != itinerary.id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Itinerary day not found"
            )
    try:
        activity = components.create_component(db, auth.agency_id, activity_in)
    except TripdeskError as exc:
        raise http_error(exc) from exc
    db.refresh(activity)
    return activity


@router.post(
    "/{itinerary_id}/save-as-template",
    response_model=schemas.ItineraryTemplate,
    status_code=status.HTTP_201_CREATED,
    summary="Snapshot the itinerary as a reusable itinerary template",
)
def save_itinerary_as_template(
    itinerary_id: int,
    request: schemas.SaveAsTemplateRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> dict:
    try:
        template = templates.save_itinerary_as_template(
            db,
            itinerary_id,
            request,
            agency_id=auth.agency_id,
            user_id=auth.user_id,
            is_admin=auth.is_admin,
        )
    except TripdeskError as exc:
        raise http_error(exc) from exc
    db.refresh(template)
    return crud.describe_template(template)


@router.post(
    "/{itinerary_id}/templates/packages/{template_id}/apply",
    response_model=schemas.PackageTemplateApplication,
    status_code=status.HTTP_201_CREATED,
    summary="Add a package built from a package template to the itinerary",
)
def apply_package_template(
    itinerary_id: int,
    template_id: int,
    apply_in: schemas.ApplyPackageTemplateRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> schemas.PackageTemplateApplication:
    try:
        return templates.apply_package_template(
            db, itinerary_id, template_id, auth.agency_id, apply_in.anchor_day_id
        )
    except TripdeskError as exc:
        raise http_error(exc) from exc
