"""Trip endpoints, including itinerary template application."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ... import crud, models, schemas, templates
from ...exceptions import TripdeskError
from ..deps import AuthContext, get_auth_context, get_db, http_error

router = APIRouter(prefix="/trips", tags=["trips"])


def _get_trip_or_404(db: Session, trip_id: int, auth: AuthContext) -> models.Trip:
    trip = crud.get_trip(db, trip_id)
    if not trip or trip.agency_id != auth.agency_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Trip not found")
    return trip


@router.post("", response_model=schemas.Trip, status_code=status.HTTP_201_CREATED)
def create_trip(
    trip_in: schemas.TripCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> models.Trip:
    trip = crud.create_trip(db, trip_in, agency_id=auth.agency_id, owner_id=auth.user_id)
    db.refresh(trip)
    return trip


@router.get("/{trip_id}", response_model=schemas.Trip)
def get_trip(
    trip_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> models.Trip:
    return _get_trip_or_404(db, trip_id, auth)


@router.get("/{trip_id}/itineraries", response_model=List[schemas.Itinerary])
def list_trip_itineraries(
    trip_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> List[models.Itinerary]:
    _get_trip_or_404(db, trip_id, auth)
    return list(crud.list_trip_itineraries(db, trip_id))


@router.post(
    "/{trip_id}/itineraries",
    response_model=schemas.Itinerary,
    status_code=status.HTTP_201_CREATED,
)
def create_itinerary(
    trip_id: int,
    itinerary_in: schemas.ItineraryCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> models.Itinerary:
    trip = _get_trip_or_404(db, trip_id, auth)
    itinerary = crud.create_itinerary(db, trip, itinerary_in)
    db.refresh(itinerary)
    return itinerary


@router.post(
    "/{trip_id}/templates/itineraries/{template_id}/apply",
    response_model=schemas.ItineraryTemplateApplication,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new itinerary on the trip from an itinerary template",
)
def apply_itinerary_template(
    trip_id: int,
    template_id: int,
    apply_in: schemas.ApplyItineraryTemplateRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> schemas.ItineraryTemplateApplication:
    try:
        return templates.apply_itinerary_template(
            db, trip_id, template_id, auth.agency_id, anchor_day=apply_in.anchor_day
        )
    except TripdeskError as exc:
        raise http_error(exc) from exc
