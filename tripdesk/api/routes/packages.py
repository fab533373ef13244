"""Package endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ... import crud, schemas, templates
from ...exceptions import TripdeskError
from ..deps import AuthContext, get_auth_context, get_db, http_error

router = APIRouter(prefix="/packages", tags=["packages"])


@router.post(
    "/{package_id}/save-as-template",
    response_model=schemas.PackageTemplate,
    status_code=status.HTTP_201_CREATED,
    summary="Snapshot a package and its children as a package template",
)
def save_package_as_template(
    package_id: int,
    request: schemas.SaveAsTemplateRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> dict:
    try:
        template = templates.save_package_as_template(
            db,
            package_id,
            request,
            agency_id=auth.agency_id,
            user_id=auth.user_id,
            is_admin=auth.is_admin,
        )
    except TripdeskError as exc:
        raise http_error(exc) from exc
    db.refresh(template)
    return crud.describe_template(template)
