"""CRUD helper functions used by the API routers and the template engine."""
from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import date, datetime
from typing import Any, Dict, Optional, Type, Union

from fastapi.encoders import jsonable_encoder
from passlib.context import CryptContext
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from . import models, schemas
from .constants import DEFAULT_ITINERARY_STATUS, STRIPPED_DETAIL_COLUMNS
from .exceptions import ForbiddenError, NotFoundError
from .utils import slugify

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

ACTIVITY_DETAIL_MODELS: dict[str, type[models.ActivityDetailMixin]] = {
    "flight": models.FlightDetails,
    "lodging": models.LodgingDetails,
    "transportation": models.TransportationDetails,
    "dining": models.DiningDetails,
    "port_info": models.PortInfoDetails,
    "options": models.OptionsDetails,
    "custom_cruise": models.CustomCruiseDetails,
}

TemplateModel = Union[Type[models.ItineraryTemplate], Type[models.PackageTemplate]]


# Travel agency and user helpers


def _ensure_unique_slug(session: Session, slug: str) -> str:
    base = slug
    counter = 1
    while session.scalar(select(models.TravelAgency).where(models.TravelAgency.slug == slug)):
        slug = f"{base}-{counter}"
        counter += 1
    return slug


def create_travel_agency(
    session: Session, agency_in: schemas.TravelAgencyCreate
) -> models.TravelAgency:
    data = agency_in.model_dump()
    slug = data.pop("slug") or slugify(data["name"])
    data["slug"] = _ensure_unique_slug(session, slug)
    agency = models.TravelAgency(**data)
    session.add(agency)
    session.flush()
    return agency


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def create_user(session: Session, user_in: schemas.UserCreate) -> models.User:
    data = user_in.model_dump()
    password = data.pop("password")
    user = models.User(**data, hashed_password=hash_password(password))
    session.add(user)
    session.flush()
    return user


def get_user_by_email(session: Session, email: str) -> models.User | None:
    statement = select(models.User).where(func.lower(models.User.email) == email.lower())
    return session.scalars(statement).first()


# Trip and itinerary helpers


def create_trip(
    session: Session, trip_in: schemas.TripCreate, *, agency_id: int, owner_id: int | None = None
) -> models.Trip:
    trip = models.Trip(**trip_in.model_dump(), agency_id=agency_id, owner_id=owner_id)
    session.add(trip)
    session.flush()
    return trip


def get_trip(session: Session, trip_id: int) -> models.Trip | None:
    return session.get(models.Trip, trip_id)


def list_trip_itineraries(session: Session, trip_id: int) -> Sequence[models.Itinerary]:
    statement = (
        select(models.Itinerary)
        .where(models.Itinerary.trip_id == trip_id)
        .order_by(models.Itinerary.sequence_order, models.Itinerary.id)
    )
    return session.scalars(statement).all()


def create_itinerary(
    session: Session, trip: models.Trip, itinerary_in: schemas.ItineraryCreate
) -> models.Itinerary:
    position = session.scalar(
        select(func.count(models.Itinerary.id)).where(models.Itinerary.trip_id == trip.id)
    )
    data = itinerary_in.model_dump()
    data["status"] = data.get("status") or DEFAULT_ITINERARY_STATUS
    itinerary = models.Itinerary(**data, trip_id=trip.id, sequence_order=position or 0)
    session.add(itinerary)
    session.flush()
    return itinerary


def get_itinerary(session: Session, itinerary_id: int) -> models.Itinerary | None:
    statement = (
        select(models.Itinerary)
        .where(models.Itinerary.id == itinerary_id)
        .options(
            selectinload(models.Itinerary.trip),
            selectinload(models.Itinerary.days)
            .selectinload(models.ItineraryDay.activities)
            .selectinload(models.Activity.pricing),
        )
        .execution_options(populate_existing=True)
    )
    return session.scalars(statement).unique().first()


def delete_itinerary(session: Session, itinerary: models.Itinerary) -> None:
    session.delete(itinerary)
    session.flush()


# Day repository


def list_days(session: Session, itinerary_id: int) -> Sequence[models.ItineraryDay]:
    statement = (
        select(models.ItineraryDay)
        .where(models.ItineraryDay.itinerary_id == itinerary_id)
        .order_by(
            models.ItineraryDay.sequence_order,
            models.ItineraryDay.day_number,
            models.ItineraryDay.id,
        )
    )
    return session.scalars(statement).all()


def get_day(session: Session, day_id: int) -> models.ItineraryDay | None:
    return session.get(models.ItineraryDay, day_id)


def create_day(
    session: Session,
    *,
    itinerary_id: int,
    day_number: int,
    date: date | None = None,
    title: str | None = None,
) -> models.ItineraryDay:
    day = models.ItineraryDay(
        itinerary_id=itinerary_id,
        day_number=day_number,
        date=date,
        title=title,
        sequence_order=day_number - 1,
    )
    session.add(day)
    session.flush()
    return day


def _resequence_days(session: Session, itinerary_id: int) -> None:
    """Renumber days so dated days follow the calendar and TBD days trail them."""

    days = list(list_days(session, itinerary_id))
    days.sort(
        key=lambda day: (day.date is None, day.date or date.min, day.day_number, day.id)
    )
    for position, day in enumerate(days):
        day.day_number = position + 1
        day.sequence_order = position
    session.flush()


def find_or_create_day_by_date(
    session: Session, itinerary_id: int, day_date: date
) -> models.ItineraryDay:
    """Return the itinerary's day for ``day_date``, creating it when absent."""

    return find_or_create_days_by_date_range(session, itinerary_id, [day_date])[0]


def find_or_create_days_by_date_range(
    session: Session, itinerary_id: int, dates: Iterable[date]
) -> list[models.ItineraryDay]:
    """Return one day per requested date, creating the missing ones in bulk.

    Not safe against concurrent writers: two sessions may both create the same
    calendar day.
    """

    requested = list(dates)
    if not requested:
        return []
    statement = select(models.ItineraryDay).where(
        models.ItineraryDay.itinerary_id == itinerary_id,
        models.ItineraryDay.date.in_(set(requested)),
    )
    by_date: dict[date, models.ItineraryDay] = {}
    for day in session.scalars(statement).all():
        by_date.setdefault(day.date, day)

    missing = sorted({day_date for day_date in requested if day_date not in by_date})
    if missing:
        next_number = (
            session.scalar(
                select(func.max(models.ItineraryDay.day_number)).where(
                    models.ItineraryDay.itinerary_id == itinerary_id
                )
            )
            or 0
        )
        for offset, day_date in enumerate(missing, start=1):
            day = models.ItineraryDay(
                itinerary_id=itinerary_id,
                day_number=next_number + offset,
                date=day_date,
                sequence_order=next_number + offset - 1,
            )
            session.add(day)
            by_date[day_date] = day
        session.flush()
        _resequence_days(session, itinerary_id)

    return [by_date[day_date] for day_date in requested]


def add_day(
    session: Session, itinerary: models.Itinerary, day_in: schemas.ItineraryDayCreate
) -> models.ItineraryDay:
    if day_in.date is not None:
        day = find_or_create_day_by_date(session, itinerary.id, day_in.date)
        if day_in.title:
            day.title = day_in.title
            session.flush()
        return day
    day_number = day_in.day_number
    if day_number is None:
        day_number = (
            session.scalar(
                select(func.max(models.ItineraryDay.day_number)).where(
                    models.ItineraryDay.itinerary_id == itinerary.id
                )
            )
            or 0
        ) + 1
    return create_day(
        session,
        itinerary_id=itinerary.id,
        day_number=day_number,
        date=None,
        title=day_in.title or f"Day {day_number}",
    )


# Activity helpers


def get_activity(session: Session, activity_id: int) -> models.Activity | None:
    statement = (
        select(models.Activity)
        .where(models.Activity.id == activity_id)
        .options(selectinload(models.Activity.pricing))
    )
    return session.scalars(statement).first()


def list_day_activities(session: Session, day_ids: Sequence[int]) -> Sequence[models.Activity]:
    if not day_ids:
        return []
    statement = (
        select(models.Activity)
        .where(models.Activity.itinerary_day_id.in_(day_ids))
        .order_by(models.Activity.sequence_order, models.Activity.id)
    )
    return session.scalars(statement).all()


def list_child_activities(session: Session, parent_id: int) -> Sequence[models.Activity]:
    statement = (
        select(models.Activity)
        .where(models.Activity.parent_activity_id == parent_id)
        .order_by(models.Activity.sequence_order, models.Activity.id)
    )
    return session.scalars(statement).all()


def get_days_by_ids(session: Session, day_ids: Iterable[int]) -> Sequence[models.ItineraryDay]:
    ids = set(day_ids)
    if not ids:
        return []
    statement = (
        select(models.ItineraryDay)
        .where(models.ItineraryDay.id.in_(ids))
        .order_by(models.ItineraryDay.sequence_order, models.ItineraryDay.id)
    )
    return session.scalars(statement).all()


def fetch_activity_pricing(
    session: Session, activity_ids: Sequence[int]
) -> dict[int, models.ActivityPricing]:
    if not activity_ids:
        return {}
    statement = select(models.ActivityPricing).where(
        models.ActivityPricing.activity_id.in_(activity_ids)
    )
    return {record.activity_id: record for record in session.scalars(statement).all()}


def _strip_detail_record(record: models.ActivityDetailMixin) -> dict[str, Any]:
    values = {
        column.key: getattr(record, column.key)
        for column in record.__table__.columns
        if column.key not in STRIPPED_DETAIL_COLUMNS and getattr(record, column.key) is not None
    }
    return jsonable_encoder(values)


def fetch_activity_details(
    session: Session, activities: Iterable[models.Activity]
) -> dict[int, dict[str, Any]]:
    """Load type-specific detail rows, one batched query per detail table."""

    ids_by_type: dict[str, list[int]] = defaultdict(list)
    for activity in activities:
        if activity.component_type in ACTIVITY_DETAIL_MODELS:
            ids_by_type[activity.component_type].append(activity.id)

    details: dict[int, dict[str, Any]] = {}
    for component_type, activity_ids in ids_by_type.items():
        detail_model = ACTIVITY_DETAIL_MODELS[component_type]
        statement = select(detail_model).where(detail_model.activity_id.in_(activity_ids))
        for record in session.scalars(statement).all():
            details[record.activity_id] = _strip_detail_record(record)
    return details


def get_activity_details(session: Session, activity: models.Activity) -> dict[str, Any] | None:
    return fetch_activity_details(session, [activity]).get(activity.id)


# Template registry helpers


def template_counts(payload: Optional[Dict[str, Any]]) -> tuple[int, int]:
    day_offsets = (payload or {}).get("dayOffsets") or []
    activity_count = sum(len(day.get("activities") or []) for day in day_offsets)
    return len(day_offsets), activity_count


def describe_template(template: models.ItineraryTemplate | models.PackageTemplate) -> dict[str, Any]:
    day_count, activity_count = template_counts(template.payload)
    return {
        "id": template.id,
        "agency_id": template.agency_id,
        "name": template.name,
        "description": template.description,
        "payload": template.payload,
        "is_active": template.is_active,
        "created_by": template.created_by,
        "created_at": template.created_at,
        "updated_at": template.updated_at,
        "day_count": day_count,
        "activity_count": activity_count,
    }


def dump_payload(
    payload: schemas.ItineraryTemplatePayload | schemas.PackageTemplatePayload,
) -> dict[str, Any]:
    return payload.model_dump(mode="json", by_alias=True, exclude_none=True)


def list_templates(
    session: Session, model: TemplateModel, agency_id: int, query: schemas.TemplateListQuery
) -> tuple[Sequence[models.ItineraryTemplate | models.PackageTemplate], int]:
    is_active = True if query.is_active is None else query.is_active
    conditions = [model.agency_id == agency_id, model.is_active == is_active]
    if query.search:
        pattern = f"%{query.search}%"
        conditions.append(or_(model.name.ilike(pattern), model.description.ilike(pattern)))

    statement = (
        select(model)
        .where(*conditions)
        .order_by(model.updated_at.desc(), model.id.desc())
        .limit(query.limit)
        .offset(query.offset)
    )
    total = session.scalar(select(func.count(model.id)).where(*conditions)) or 0
    return session.scalars(statement).all(), total


def get_template(
    session: Session, model: TemplateModel, template_id: int, agency_id: int
) -> models.ItineraryTemplate | models.PackageTemplate | None:
    statement = select(model).where(model.id == template_id, model.agency_id == agency_id)
    return session.scalars(statement).first()


def get_template_or_raise(
    session: Session, model: TemplateModel, template_id: int, agency_id: int
) -> models.ItineraryTemplate | models.PackageTemplate:
    template = get_template(session, model, template_id, agency_id)
    if template is None:
        label = "Package" if model is models.PackageTemplate else "Itinerary"
        raise NotFoundError(f"{label} template {template_id} not found")
    return template


def create_template(
    session: Session,
    model: TemplateModel,
    *,
    agency_id: int,
    name: str,
    description: str | None,
    payload: schemas.ItineraryTemplatePayload | schemas.PackageTemplatePayload,
    created_by: int | None,
) -> models.ItineraryTemplate | models.PackageTemplate:
    template = model(
        agency_id=agency_id,
        name=name,
        description=description,
        payload=dump_payload(payload),
        is_active=True,
        created_by=created_by,
    )
    session.add(template)
    session.flush()
    return template


def update_template(
    session: Session,
    template: models.ItineraryTemplate | models.PackageTemplate,
    template_in: schemas.ItineraryTemplateUpdate | schemas.PackageTemplateUpdate,
) -> models.ItineraryTemplate | models.PackageTemplate:
    data = template_in.model_dump(exclude_unset=True)
    if "payload" in data:
        data.pop("payload")
        if template_in.payload is not None:
            template.payload = dump_payload(template_in.payload)
    for field, value in data.items():
        # Both columns are NOT NULL; an explicit null leaves them unchanged.
        if field in ("name", "is_active") and value is None:
            continue
        setattr(template, field, value)
    template.updated_at = datetime.utcnow()
    session.add(template)
    session.flush()
    return template


def delete_template(
    session: Session, template: models.ItineraryTemplate | models.PackageTemplate
) -> None:
    template.is_active = False
    template.updated_at = datetime.utcnow()
    session.flush()


def ensure_template_editable(
    template: models.ItineraryTemplate | models.PackageTemplate,
    *,
    user_id: int,
    is_admin: bool,
    action: str = "modify",
) -> None:
    """Admins edit anything; agency templates are otherwise read-only, user
    templates belong to their creator."""

    if is_admin:
        return
    if template.created_by is None:
        raise ForbiddenError(f"Only admins can {action} agency templates")
    if template.created_by != user_id:
        raise ForbiddenError(f"You can only {action} templates you created")
