"""Activity creation routing for every component type.

Orchestrated types (flights, lodging, transportation, ...) validate their detail
bag and write a one-to-one detail row next to the activity. Everything else goes
through :func:`create_base_activity`.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Type

from pydantic import ValidationError
from sqlalchemy.orm import Session

from . import crud, models, schemas
from .constants import (
    ACTIVITY_STATUSES,
    BASE_COMPONENT_TYPES,
    DEFAULT_CURRENCY,
)
from .exceptions import InvalidArgumentError, NotFoundError
from .utils import is_valid_timezone, parse_local_datetime

logger = logging.getLogger(__name__)

ComponentCreator = Callable[[Session, int, schemas.ActivityCreate], models.Activity]


def _format_validation_error(exc: ValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        messages.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(messages)


def _validate_details(
    schema: Type[schemas.ActivityDetailsBase], details: Optional[dict]
) -> schemas.ActivityDetailsBase:
    try:
        return schema.model_validate(details or {})
    except ValidationError as exc:
        raise InvalidArgumentError(_format_validation_error(exc)) from exc


def _ensure_references(session: Session, base: schemas.ActivityCreate) -> None:
    if base.itinerary_day_id is not None and crud.get_day(session, base.itinerary_day_id) is None:
        raise NotFoundError(f"Itinerary day {base.itinerary_day_id} not found")
    if (
        base.parent_activity_id is not None
        and session.get(models.Activity, base.parent_activity_id) is None
    ):
        raise NotFoundError(f"Activity {base.parent_activity_id} not found")


def create_base_activity(
    session: Session,
    agency_id: int,
    base: schemas.ActivityCreate,
    *,
    component_type: Optional[str] = None,
    activity_type: Optional[str] = None,
) -> models.Activity:
    """Persist the shared activity row and, when priced, its pricing row."""

    _ensure_references(session, base)
    if base.status not in ACTIVITY_STATUSES:
        raise InvalidArgumentError(
            f"Invalid status: {base.status}. Must be one of: {', '.join(ACTIVITY_STATUSES)}"
        )

    component_type = component_type or base.component_type
    currency = base.currency or DEFAULT_CURRENCY
    activity = models.Activity(
        agency_id=agency_id,
        itinerary_day_id=base.itinerary_day_id,
        parent_activity_id=base.parent_activity_id,
        component_type=component_type,
        activity_type=activity_type or base.activity_type or component_type,
        name=base.name,
        description=base.description,
        sequence_order=base.sequence_order,
        status=base.status,
        start_datetime=parse_local_datetime(base.start_datetime),
        end_datetime=parse_local_datetime(base.end_datetime),
        timezone=base.timezone,
        location=base.location,
        address=base.address,
        coordinates=base.coordinates.model_dump() if base.coordinates else None,
        notes=base.notes,
        confirmation_number=base.confirmation_number,
        pricing_type=base.pricing_type,
        currency=currency,
    )
    session.add(activity)
    session.flush()

    if base.has_pricing():
        pricing = models.ActivityPricing(
            activity_id=activity.id,
            agency_id=agency_id,
            currency=currency,
            total_price_cents=base.total_price_cents,
            taxes_and_fees_cents=base.taxes_and_fees_cents,
            commission_total_cents=base.commission_total_cents,
            commission_split_percentage=(
                Decimal(str(base.commission_split_percentage))
                if base.commission_split_percentage is not None
                else None
            ),
        )
        if base.pricing_type:
            pricing.pricing_type = base.pricing_type
        session.add(pricing)
        session.flush()

    return activity


def _create_with_details(
    session: Session,
    agency_id: int,
    base: schemas.ActivityCreate,
    component_type: str,
    details: schemas.ActivityDetailsBase,
) -> models.Activity:
    activity = create_base_activity(
        session,
        agency_id,
        base,
        component_type=component_type,
        activity_type=component_type,
    )
    detail_model = crud.ACTIVITY_DETAIL_MODELS[component_type]
    session.add(detail_model(activity_id=activity.id, **details.model_dump()))
    session.flush()
    return activity


def create_flight(session: Session, agency_id: int, base: schemas.ActivityCreate) -> models.Activity:
    details = _validate_details(schemas.FlightDetailsData, base.details)
    return _create_with_details(session, agency_id, base, "flight", details)


def create_lodging(session: Session, agency_id: int, base: schemas.ActivityCreate) -> models.Activity:
    details = _validate_details(schemas.LodgingDetailsData, base.details)
    return _create_with_details(session, agency_id, base, "lodging", details)


def create_transportation(
    session: Session, agency_id: int, base: schemas.ActivityCreate
) -> models.Activity:
    details = _validate_details(schemas.TransportationDetailsData, base.details)
    for field in ("pickup_timezone", "dropoff_timezone"):
        value = getattr(details, field)
        if value and not is_valid_timezone(value):
            raise InvalidArgumentError(f"Invalid {field.replace('_', ' ')}: {value}")
    return _create_with_details(session, agency_id, base, "transportation", details)


def create_dining(session: Session, agency_id: int, base: schemas.ActivityCreate) -> models.Activity:
    details = _validate_details(schemas.DiningDetailsData, base.details)
    if details.party_size is not None and not 1 <= details.party_size <= 100:
        raise InvalidArgumentError("Party size must be between 1 and 100")
    return _create_with_details(session, agency_id, base, "dining", details)


def create_port_info(
    session: Session, agency_id: int, base: schemas.ActivityCreate
) -> models.Activity:
    details = _validate_details(schemas.PortInfoDetailsData, base.details)
    return _create_with_details(session, agency_id, base, "port_info", details)


def create_options(session: Session, agency_id: int, base: schemas.ActivityCreate) -> models.Activity:
    details = _validate_details(schemas.OptionsDetailsData, base.details)
    return _create_with_details(session, agency_id, base, "options", details)


def create_custom_cruise(
    session: Session, agency_id: int, base: schemas.ActivityCreate
) -> models.Activity:
    details = _validate_details(schemas.CustomCruiseDetailsData, base.details)
    return _create_with_details(session, agency_id, base, "custom_cruise", details)


COMPONENT_CREATORS: Dict[str, ComponentCreator] = {
    "flight": create_flight,
    "lodging": create_lodging,
    "transportation": create_transportation,
    "dining": create_dining,
    "port_info": create_port_info,
    "options": create_options,
    "custom_cruise": create_custom_cruise,
}


def create_component(
    session: Session,
    agency_id: int,
    base: schemas.ActivityCreate,
    warnings: Optional[List[str]] = None,
) -> models.Activity:
    """Route creation by component type, falling back to the base creator.

    Unknown types are still created; the fallback is logged and, when a
    ``warnings`` list is supplied, reported there as well.
    """

    creator = COMPONENT_CREATORS.get(base.component_type)
    if creator is not None:
        return creator(session, agency_id, base)

    if base.component_type not in BASE_COMPONENT_TYPES:
        message = (
            f"Unknown component type '{base.component_type}' for activity "
            f"'{base.name}', created as a base activity"
        )
        logger.warning(
            "Unknown component type %s for activity %s, using base creator",
            base.component_type,
            base.name,
        )
        if warnings is not None:
            warnings.append(message)
    return create_base_activity(session, agency_id, base)
