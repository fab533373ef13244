"""Template extraction and application.

Extraction turns a live itinerary, or a package and its children, into a
date-relative payload: every day becomes a ``dayIndex`` counted in calendar days
from an anchor and every activity keeps only its ``HH:MM`` clock readings.
Application replays a payload against a new anchor date (or, when none is
known, against numbered TBD days) and rebuilds days, activities, pricing and
detail rows. Each application runs inside :func:`database.unit_of_work`.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError
from sqlalchemy.orm import Session

from . import components, crud, models, schemas
from .constants import (
    DEFAULT_ACTIVITY_STATUS,
    DEFAULT_CURRENCY,
    DEFAULT_ITINERARY_STATUS,
    DEFAULT_PACKAGE_PRICING_TYPE,
    PACKAGE_ACTIVITY_TYPE,
    PACKAGE_PRICING_TYPES,
)
from .database import unit_of_work
from .exceptions import ForbiddenError, InvalidArgumentError, NotFoundError
from .utils import (
    add_days,
    calendar_day_offset,
    combine_date_and_time,
    extract_time_of_day,
    parse_iso_date,
)

logger = logging.getLogger(__name__)


# Extraction


def _day_indexes(
    days: Sequence[models.ItineraryDay], anchor: models.ItineraryDay
) -> Dict[int, int]:
    """Map day ids to calendar offsets from ``anchor``.

    Dated days use their date. Undated days are placed by ``day_number`` relative
    to the anchor and moved forward past any offset already taken, so every day
    keeps its own ``dayIndex``.
    """

    anchor_date = anchor.date or date.today()
    indexes: Dict[int, int] = {}
    for day in days:
        if day.date is not None:
            indexes[day.id] = calendar_day_offset(anchor_date, day.date)

    taken = set(indexes.values())
    for day in days:
        if day.date is not None:
            continue
        index = day.day_number - anchor.day_number
        while index in taken:
            index += 1
        taken.add(index)
        indexes[day.id] = index
    return indexes


def _template_pricing(pricing: Optional[models.ActivityPricing]) -> Optional[schemas.TemplatePricing]:
    if pricing is None:
        return None
    split = pricing.commission_split_percentage
    return schemas.TemplatePricing(
        total_price_cents=pricing.total_price_cents,
        currency=pricing.currency,
        taxes_cents=pricing.taxes_and_fees_cents,
        commission_amount_cents=pricing.commission_total_cents,
        commission_split_percent=float(split) if split is not None else None,
    )


def _template_activity(
    activity: models.Activity,
    pricing: Optional[models.ActivityPricing],
    details: Optional[dict],
) -> schemas.TemplateActivity:
    return schemas.TemplateActivity(
        component_type=activity.component_type,
        activity_type=activity.activity_type,
        name=activity.name,
        sequence_order=activity.sequence_order,
        start_time=extract_time_of_day(activity.start_datetime),
        end_time=extract_time_of_day(activity.end_datetime),
        timezone=activity.timezone,
        location=activity.location,
        address=activity.address,
        coordinates=activity.coordinates,
        notes=activity.notes,
        confirmation_number=activity.confirmation_number,
        pricing=_template_pricing(pricing),
        details=details,
    )


def _build_day_offsets(
    session: Session,
    days: Sequence[models.ItineraryDay],
    anchor: models.ItineraryDay,
    activities: Sequence[models.Activity],
) -> List[schemas.TemplateDayOffset]:
    activity_ids = [activity.id for activity in activities]
    pricing_by_activity = crud.fetch_activity_pricing(session, activity_ids)
    details_by_activity = crud.fetch_activity_details(session, activities)

    activities_by_day: Dict[int, List[models.Activity]] = defaultdict(list)
    for activity in activities:
        activities_by_day[activity.itinerary_day_id].append(activity)

    day_indexes = _day_indexes(days, anchor)
    offsets = []
    for day in days:
        day_activities = sorted(
            activities_by_day.get(day.id, []), key=lambda item: (item.sequence_order, item.id)
        )
        offsets.append(
            schemas.TemplateDayOffset(
                day_index=day_indexes[day.id],
                activities=[
                    _template_activity(
                        activity,
                        pricing_by_activity.get(activity.id),
                        details_by_activity.get(activity.id),
                    )
                    for activity in day_activities
                ],
            )
        )
    offsets.sort(key=lambda offset: offset.day_index)
    return offsets


def extract_itinerary(session: Session, itinerary_id: int) -> schemas.ItineraryTemplatePayload:
    """Snapshot an itinerary as a payload anchored on its first day.

    Floating activities (not pinned to any day) are left out.
    """

    days = crud.list_days(session, itinerary_id)
    if not days:
        raise NotFoundError(f"Itinerary {itinerary_id} not found or has no days")

    activities = crud.list_day_activities(session, [day.id for day in days])
    day_offsets = _build_day_offsets(session, days, days[0], activities)
    return schemas.ItineraryTemplatePayload(day_offsets=day_offsets)


def _package_anchor(days: Sequence[models.ItineraryDay]) -> models.ItineraryDay:
    dated = [day for day in days if day.date is not None]
    if dated:
        return min(dated, key=lambda day: (day.date, day.day_number))
    return min(days, key=lambda day: (day.day_number, day.sequence_order))


def _package_metadata(
    package: models.Activity, pricing: Optional[models.ActivityPricing]
) -> schemas.PackageMetadata:
    pricing_type = pricing.pricing_type if pricing else package.pricing_type
    if pricing_type not in PACKAGE_PRICING_TYPES:
        pricing_type = DEFAULT_PACKAGE_PRICING_TYPE
    return schemas.PackageMetadata(
        name=package.name,
        pricing_type=pricing_type,
        total_price_cents=pricing.total_price_cents if pricing else None,
        currency=(pricing.currency if pricing else None) or package.currency,
    )


def extract_package(session: Session, package_activity_id: int) -> schemas.PackageTemplatePayload:
    """Snapshot a package and its direct children, anchored on their earliest day."""

    package = crud.get_activity(session, package_activity_id)
    if package is None:
        raise NotFoundError(f"Package {package_activity_id} not found")
    if package.activity_type != PACKAGE_ACTIVITY_TYPE:
        raise InvalidArgumentError(f"Activity {package_activity_id} is not a package")

    children = [
        child
        for child in crud.list_child_activities(session, package.id)
        if child.itinerary_day_id is not None
    ]
    days = crud.get_days_by_ids(session, (child.itinerary_day_id for child in children))
    day_offsets: List[schemas.TemplateDayOffset] = []
    if days:
        day_offsets = _build_day_offsets(session, days, _package_anchor(days), children)

    pricing = crud.fetch_activity_pricing(session, [package.id]).get(package.id)
    return schemas.PackageTemplatePayload(
        package_metadata=_package_metadata(package, pricing),
        day_offsets=day_offsets,
    )


def _template_owner(user_id: int, is_admin: bool, is_agency_template: bool) -> Optional[int]:
    if not is_agency_template:
        return user_id
    if not is_admin:
        raise ForbiddenError("Only admins can create agency templates")
    return None


def save_itinerary_as_template(
    session: Session,
    itinerary_id: int,
    request: schemas.SaveAsTemplateRequest,
    *,
    agency_id: int,
    user_id: int,
    is_admin: bool = False,
) -> models.ItineraryTemplate:
    itinerary = session.get(models.Itinerary, itinerary_id)
    if itinerary is None:
        raise NotFoundError(f"Itinerary {itinerary_id} not found")
    if itinerary.trip.agency_id != agency_id:
        raise ForbiddenError("Itinerary belongs to another agency")
    created_by = _template_owner(user_id, is_admin, request.is_agency_template)

    payload = extract_itinerary(session, itinerary_id)
    template = crud.create_template(
        session,
        models.ItineraryTemplate,
        agency_id=agency_id,
        name=request.name,
        description=request.description,
        payload=payload,
        created_by=created_by,
    )
    logger.info("Saved itinerary %s as template %s", itinerary_id, template.id)
    return template


def save_package_as_template(
    session: Session,
    package_activity_id: int,
    request: schemas.SaveAsTemplateRequest,
    *,
    agency_id: int,
    user_id: int,
    is_admin: bool = False,
) -> models.PackageTemplate:
    package = crud.get_activity(session, package_activity_id)
    if package is None:
        raise NotFoundError(f"Package {package_activity_id} not found")
    if package.agency_id != agency_id:
        raise ForbiddenError("Package belongs to another agency")
    created_by = _template_owner(user_id, is_admin, request.is_agency_template)

    payload = extract_package(session, package_activity_id)
    template = crud.create_template(
        session,
        models.PackageTemplate,
        agency_id=agency_id,
        name=request.name,
        description=request.description,
        payload=payload,
        created_by=created_by,
    )
    logger.info("Saved package %s as template %s", package_activity_id, template.id)
    return template


# Application


def _warn(warnings: List[str], message: str, *args) -> None:
    logger.warning(message, *args)
    warnings.append(message % args)


def _unique_day_offsets(
    day_offsets: Iterable[schemas.TemplateDayOffset], template_id: int, warnings: List[str]
) -> List[schemas.TemplateDayOffset]:
    """Sort by ``dayIndex`` and keep the first entry of each index."""

    seen: set[int] = set()
    unique = []
    for offset in sorted(day_offsets, key=lambda item: item.day_index):
        if offset.day_index in seen:
            _warn(
                warnings,
                "Duplicate dayIndex %s in template %s, skipping",
                offset.day_index,
                template_id,
            )
            continue
        seen.add(offset.day_index)
        unique.append(offset)
    return unique


def _local_datetime(day: models.ItineraryDay, time_of_day: Optional[str]) -> Optional[str]:
    if day.date is None or not time_of_day:
        return None
    return combine_date_and_time(day.date, time_of_day)


def _materialize_activity(
    session: Session,
    agency_id: int,
    day: models.ItineraryDay,
    template_activity: schemas.TemplateActivity,
    warnings: List[str],
    parent_activity_id: Optional[int] = None,
) -> models.Activity:
    pricing = template_activity.pricing or schemas.TemplatePricing()
    split = pricing.commission_split_percent
    try:
        base = schemas.ActivityCreate(
            itinerary_day_id=day.id,
            parent_activity_id=parent_activity_id,
            component_type=template_activity.component_type,
            activity_type=template_activity.activity_type,
            name=template_activity.name,
            sequence_order=template_activity.sequence_order,
            status=DEFAULT_ACTIVITY_STATUS,
            start_datetime=_local_datetime(day, template_activity.start_time),
            end_datetime=_local_datetime(day, template_activity.end_time),
            timezone=template_activity.timezone,
            location=template_activity.location,
            address=template_activity.address,
            coordinates=template_activity.coordinates,
            notes=template_activity.notes,
            confirmation_number=template_activity.confirmation_number,
            currency=pricing.currency or None,
            total_price_cents=pricing.total_price_cents,
            taxes_and_fees_cents=pricing.taxes_cents,
            commission_total_cents=pricing.commission_amount_cents,
            commission_split_percentage=Decimal(str(split)) if split is not None else None,
            details=template_activity.details,
        )
    except ValidationError as exc:
        raise InvalidArgumentError(
            f"Template activity '{template_activity.name}' is invalid: {exc}"
        ) from exc
    return components.create_component(session, agency_id, base, warnings)


def _load_payload(model, raw: Optional[dict]):
    try:
        return model.model_validate(raw or {})
    except ValidationError as exc:
        raise InvalidArgumentError(f"Template payload is invalid: {exc}") from exc


def apply_itinerary_template(
    session: Session,
    trip_id: int,
    template_id: int,
    agency_id: int,
    anchor_day: Optional[str] = None,
) -> schemas.ItineraryTemplateApplication:
    """Build a new draft itinerary on ``trip_id`` from an itinerary template.

    The anchor is ``anchor_day`` when given, else the trip's start date. Without
    an anchor the days are created undated, numbered ``dayIndex + 1``.
    """

    warnings: List[str] = []
    with unit_of_work(session):
        template = crud.get_template_or_raise(session, models.ItineraryTemplate, template_id, agency_id)
        trip = crud.get_trip(session, trip_id)
        if trip is None or trip.agency_id != agency_id:
            raise NotFoundError(f"Trip {trip_id} not found")

        if anchor_day is not None:
            anchor = parse_iso_date(anchor_day)
            if anchor is None:
                _warn(warnings, "Invalid anchor day %r, creating TBD days", anchor_day)
        else:
            anchor = trip.start_date

        raw_offsets = (template.payload or {}).get("dayOffsets")
        payload = _load_payload(schemas.ItineraryTemplatePayload, template.payload)
        itinerary = crud.create_itinerary(
            session,
            trip,
            schemas.ItineraryCreate(
                name=template.name,
                description=template.description,
                status=DEFAULT_ITINERARY_STATUS,
            ),
        )
        if not raw_offsets:
            _warn(warnings, "Template %s has no day offsets, itinerary left empty", template_id)

        for offset in _unique_day_offsets(payload.day_offsets, template_id, warnings):
            if anchor is not None:
                day = crud.find_or_create_day_by_date(
                    session, itinerary.id, add_days(anchor, offset.day_index)
                )
            else:
                day_number = offset.day_index + 1
                day = crud.create_day(
                    session,
                    itinerary_id=itinerary.id,
                    day_number=day_number,
                    date=None,
                    title=f"Day {day_number}",
                )
            for template_activity in offset.activities:
                _materialize_activity(session, agency_id, day, template_activity, warnings)

    logger.info(
        "Applied itinerary template %s to trip %s as itinerary %s",
        template_id,
        trip_id,
        itinerary.id,
    )
    return schemas.ItineraryTemplateApplication(itinerary_id=itinerary.id, warnings=warnings)


def _package_days(
    session: Session,
    itinerary: models.Itinerary,
    anchor: models.ItineraryDay,
    day_indexes: Sequence[int],
) -> Dict[int, models.ItineraryDay]:
    """Resolve each ``dayIndex`` to a day, creating the days the itinerary lacks."""

    if not day_indexes:
        return {0: anchor}

    if anchor.date is not None:
        anchor_date = anchor.date
        start = min(0, min(day_indexes))
        end = max(0, max(day_indexes))
        dates = [add_days(anchor_date, index) for index in range(start, end + 1)]
        days = crud.find_or_create_days_by_date_range(session, itinerary.id, dates)
        by_date = dict(zip(dates, days))
        mapping = {index: by_date[add_days(anchor_date, index)] for index in day_indexes}
        mapping[0] = anchor
        return mapping

    existing = {day.day_number: day for day in crud.list_days(session, itinerary.id)}
    anchor_number = anchor.day_number
    mapping = {}
    for index in day_indexes:
        day_number = anchor_number + index
        day = existing.get(day_number)
        if day is None:
            day = crud.create_day(
                session,
                itinerary_id=itinerary.id,
                day_number=day_number,
                date=None,
                title=f"Day {day_number}",
            )
            existing[day_number] = day
        mapping[index] = day
    mapping[0] = anchor
    return mapping


def apply_package_template(
    session: Session,
    itinerary_id: int,
    template_id: int,
    agency_id: int,
    anchor_day_id: int,
) -> schemas.PackageTemplateApplication:
    """Add a package from a template to an existing itinerary.

    The package activity sits on the anchor day; its children land on
    ``anchor + dayIndex``, extending the itinerary with missing days.
    """

    warnings: List[str] = []
    with unit_of_work(session):
        template = crud.get_template_or_raise(session, models.PackageTemplate, template_id, agency_id)
        itinerary = session.get(models.Itinerary, itinerary_id)
        if itinerary is None or itinerary.trip.agency_id != agency_id:
            raise NotFoundError(f"Itinerary {itinerary_id} not found")
        anchor = crud.get_day(session, anchor_day_id)
        if anchor is None or anchor.itinerary_id != itinerary.id:
            raise NotFoundError(f"Itinerary day {anchor_day_id} not found in itinerary {itinerary_id}")

        payload = _load_payload(schemas.PackageTemplatePayload, template.payload)
        if payload.package_metadata is None or payload.day_offsets is None:
            raise InvalidArgumentError("Template payload is incomplete")

        day_offsets = _unique_day_offsets(payload.day_offsets, template_id, warnings)
        days = _package_days(
            session, itinerary, anchor, [offset.day_index for offset in day_offsets]
        )

        metadata = payload.package_metadata
        package = components.create_base_activity(
            session,
            agency_id,
            schemas.ActivityCreate(
                itinerary_day_id=anchor.id,
                component_type=PACKAGE_ACTIVITY_TYPE,
                activity_type=PACKAGE_ACTIVITY_TYPE,
                name=metadata.name,
                sequence_order=len(crud.list_day_activities(session, [anchor.id])),
                status=DEFAULT_ACTIVITY_STATUS,
                pricing_type=metadata.pricing_type or DEFAULT_PACKAGE_PRICING_TYPE,
                currency=metadata.currency or DEFAULT_CURRENCY,
                total_price_cents=metadata.total_price_cents,
            ),
        )

        for offset in day_offsets:
            day = days[offset.day_index]
            for template_activity in offset.activities:
                _materialize_activity(
                    session,
                    agency_id,
                    day,
                    template_activity,
                    warnings,
                    parent_activity_id=package.id,
                )

    logger.info(
        "Applied package template %s to itinerary %s as package %s",
        template_id,
        itinerary_id,
        package.id,
    )
    return schemas.PackageTemplateApplication(package_id=package.id, warnings=warnings)
