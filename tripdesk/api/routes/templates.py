"""Template registry endpoints for itinerary and package templates."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ...constants import DEFAULT_TEMPLATE_LIST_LIMIT, MAX_TEMPLATE_LIST_LIMIT
from ...exceptions import TripdeskError
from ..deps import AuthContext, get_auth_context, get_db, http_error

router = APIRouter(prefix="/templates", tags=["templates"])


def get_template_list_query(
    search: Optional[str] = Query(None, description="Case-insensitive name/description filter"),
    is_active: Optional[bool] = Query(None, description="Defaults to active templates only"),
    limit: int = Query(DEFAULT_TEMPLATE_LIST_LIMIT, ge=1, le=MAX_TEMPLATE_LIST_LIMIT),
    offset: int = Query(0, ge=0),
) -> schemas.TemplateListQuery:
    return schemas.TemplateListQuery(
        search=search, is_active=is_active, limit=limit, offset=offset
    )


def _creator_for(template_in: schemas.TemplateCreateBase, auth: AuthContext) -> Optional[int]:
    if not template_in.is_agency_template:
        return auth.user_id
    if not auth.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can create agency templates",
        )
    return None


def _get_or_404(db: Session, model: crud.TemplateModel, template_id: int, auth: AuthContext):
    try:
        return crud.get_template_or_raise(db, model, template_id, auth.agency_id)
    except TripdeskError as exc:
        raise http_error(exc) from exc


def _ensure_editable(template, auth: AuthContext, action: str = "modify") -> None:
    try:
        crud.ensure_template_editable(
            template, user_id=auth.user_id, is_admin=auth.is_admin, action=action
        )
    except TripdeskError as exc:
        raise http_error(exc) from exc


# Itinerary templates


@router.get("/itineraries", response_model=schemas.ItineraryTemplateList)
def list_itinerary_templates(
    query: schemas.TemplateListQuery = Depends(get_template_list_query),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> dict:
    rows, total = crud.list_templates(db, models.ItineraryTemplate, auth.agency_id, query)
    return {"data": [crud.describe_template(row) for row in rows], "total": total}


@router.post(
    "/itineraries",
    response_model=schemas.ItineraryTemplate,
    status_code=status.HTTP_201_CREATED,
)
def create_itinerary_template(
    template_in: schemas.ItineraryTemplateCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> dict:
    template = crud.create_template(
        db,
        models.ItineraryTemplate,
        agency_id=auth.agency_id,
        name=template_in.name,
        description=template_in.description,
        payload=template_in.payload,
        created_by=_creator_for(template_in, auth),
    )
    db.refresh(template)
    return crud.describe_template(template)


@router.get("/itineraries/{template_id}", response_model=schemas.ItineraryTemplate)
def get_itinerary_template(
    template_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> dict:
    return crud.describe_template(_get_or_404(db, models.ItineraryTemplate, template_id, auth))


@router.patch("/itineraries/{template_id}", response_model=schemas.ItineraryTemplate)
def update_itinerary_template(
    template_id: int,
    template_in: schemas.ItineraryTemplateUpdate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> dict:
    template = _get_or_404(db, models.ItineraryTemplate, template_id, auth)
    _ensure_editable(template, auth)
    template = crud.update_template(db, template, template_in)
    db.refresh(template)
    return crud.describe_template(template)


@router.delete("/itineraries/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_itinerary_template(
    template_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> Response:
    template = _get_or_404(db, models.ItineraryTemplate, template_id, auth)
    _ensure_editable(template, auth, action="delete")
    crud.delete_template(db, template)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Package templates


@router.get("/packages", response_model=schemas.PackageTemplateList)
def list_package_templates(
    query: schemas.TemplateListQuery = Depends(get_template_list_query),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> dict:
    rows, total = crud.list_templates(db, models.PackageTemplate, auth.agency_id, query)
    return {"data": [crud.describe_template(row) for row in rows], "total": total}


@router.post(
    "/packages",
    response_model=schemas.PackageTemplate,
    status_code=status.HTTP_201_CREATED,
)
def create_package_template(
    template_in: schemas.PackageTemplateCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> dict:
    template = crud.create_template(
        db,
        models.PackageTemplate,
        agency_id=auth.agency_id,
        name=template_in.name,
        description=template_in.description,
        payload=template_in.payload,
        created_by=_creator_for(template_in, auth),
    )
    db.refresh(template)
    return crud.describe_template(template)


@router.get("/packages/{template_id}", response_model=schemas.PackageTemplate)
def get_package_template(
    template_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> dict:
    return crud.describe_template(_get_or_404(db, models.PackageTemplate, template_id, auth))


@router.patch("/packages/{template_id}", response_model=schemas.PackageTemplate)
def update_package_template(
    template_id: int,
    template_in: schemas.PackageTemplateUpdate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> dict:
    template = _get_or_404(db, models.PackageTemplate, template_id, auth)
    _ensure_editable(template, auth)
    template = crud.update_template(db, template, template_in)
    db.refresh(template)
    return crud.describe_template(template)


@router.delete("/packages/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_package_template(
    template_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> Response:
    template = _get_or_404(db, models.PackageTemplate, template_id, auth)
    _ensure_editable(template, auth, action="delete")
    crud.delete_template(db, template)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
