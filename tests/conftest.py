from __future__ import annotations

import sys
from datetime import date, datetime
from pathlib import Path
from typing import Generator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tripdesk import components, crud, models, schemas  # noqa: E402
from tripdesk.database import Base, build_engine  # noqa: E402
from tripdesk.main import app, get_db  # noqa: E402

engine = build_engine("sqlite://")
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def reset_database() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


reset_database()


def override_get_db() -> Generator[Session, None, None]:
    with TestingSessionLocal() as session:
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        session.commit()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture
def api_client() -> Generator[TestClient, None, None]:
    reset_database()
    with TestClient(app) as client:
        yield client


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    reset_database()
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def create_agency_user(
    email: str = "planner@northstar.example",
    *,
    agency_name: str = "Northstar Travel",
    is_admin: bool = False,
) -> dict[str, str]:
    """Create (or reuse) an agency and a user in it, returning auth headers."""

    with TestingSessionLocal() as session:
        agency = session.scalars(
            select(models.TravelAgency).where(models.TravelAgency.name == agency_name)
        ).first()
        if agency is None:
            agency = crud.create_travel_agency(
                session, schemas.TravelAgencyCreate(name=agency_name)
            )
        crud.create_user(
            session,
            schemas.UserCreate(
                email=email,
                password="Wanderlust#2025",
                full_name="Trip Planner",
                is_admin=is_admin,
                agency_id=agency.id,
            ),
        )
        session.commit()
    return {"X-User-Email": email}


def seed_agency(session: Session, name: str = "Northstar Travel") -> tuple[int, int]:
    """Create an agency and an admin user on ``session``; return their ids."""

    agency = crud.create_travel_agency(session, schemas.TravelAgencyCreate(name=name))
    user = crud.create_user(
        session,
        schemas.UserCreate(
            email=f"admin@{agency.slug}.example",
            password="Wanderlust#2025",
            is_admin=True,
            agency_id=agency.id,
        ),
    )
    return agency.id, user.id


def seed_itinerary(
    session: Session,
    agency_id: int,
    *,
    start_date: Optional[date] = date(2025, 1, 10),
    day_dates: tuple[Optional[date], ...] = (date(2025, 1, 10), date(2025, 1, 11)),
) -> models.Itinerary:
    trip = crud.create_trip(
        session,
        schemas.TripCreate(name="Lisbon Escape", start_date=start_date),
        agency_id=agency_id,
    )
    itinerary = crud.create_itinerary(session, trip, schemas.ItineraryCreate(name="Lisbon"))
    for number, day_date in enumerate(day_dates, start=1):
        session.add(
            models.ItineraryDay(
                itinerary_id=itinerary.id,
                day_number=number,
                date=day_date,
                sequence_order=number - 1,
            )
        )
    session.flush()
    return itinerary


def add_activity(
    session: Session,
    agency_id: int,
    day: models.ItineraryDay,
    *,
    name: str,
    component_type: str = "tour",
    start: Optional[datetime] = None,
    sequence_order: int = 0,
    parent_activity_id: Optional[int] = None,
    **fields,
) -> models.Activity:
    return components.create_component(
        session,
        agency_id,
        schemas.ActivityCreate(
            itinerary_day_id=day.id if day is not None else None,
            parent_activity_id=parent_activity_id,
            component_type=component_type,
            name=name,
            sequence_order=sequence_order,
            start_datetime=start.isoformat() if start else None,
            **fields,
        ),
    )
