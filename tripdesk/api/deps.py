"""Shared FastAPI dependencies."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Generator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from .. import crud
from ..database import SessionLocal
from ..exceptions import ForbiddenError, InvalidArgumentError, NotFoundError, TripdeskError


def get_db() -> Generator[Session, None, None]:
    """Yield a session for one request; commit if the handler returns normally."""
    with SessionLocal() as session:
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        session.commit()


@dataclass(frozen=True)
class AuthContext:
    """Identity of the caller, passed explicitly into every core call."""

    agency_id: int
    user_id: int
    is_admin: bool = False


def get_auth_context(
    user_email: Annotated[str | None, Header(alias="X-User-Email")] = None,
    db: Session = Depends(get_db),
) -> AuthContext:
    """Resolve the acting user from the ``X-User-Email`` header."""

    if not user_email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Email header required",
        )

    user = crud.get_user_by_email(db, user_email)
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unknown or inactive user",
        )

    return AuthContext(agency_id=user.agency_id, user_id=user.id, is_admin=user.is_admin)


def http_error(exc: TripdeskError) -> HTTPException:
    """Translate a domain error into the matching HTTP error."""

    if isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, ForbiddenError):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, InvalidArgumentError):
        code = status.HTTP_400_BAD_REQUEST
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=str(exc))
