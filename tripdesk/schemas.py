"""Pydantic schemas powering the Tripdesk API and the template payload format."""
from __future__ import annotations

import datetime as dt
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from .constants import (
    CABIN_CATEGORIES,
    DEFAULT_ACTIVITY_STATUS,
    DEFAULT_TEMPLATE_LIST_LIMIT,
    MAX_TEMPLATE_LIST_LIMIT,
    TRANSPORTATION_SUBTYPES,
)

_TIME_OF_DAY = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _validate_time_of_day(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if not _TIME_OF_DAY.match(value):
        raise ValueError("Must be in HH:MM format")
    return value


class TimestampMixin(BaseModel):
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Agencies and users


class TravelAgencyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    slug: Optional[str] = None
    default_currency: str = Field("CAD", min_length=3, max_length=3)


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: Optional[str] = None
    is_admin: bool = False
    agency_id: int


# Trips, itineraries, days


class TripCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    start_date: Optional[date] = Field(
        None, description="Default anchor when applying itinerary templates"
    )
    end_date: Optional[date] = None
    currency: str = Field("CAD", min_length=3, max_length=3)
    timezone: Optional[str] = None

    @field_validator("end_date")
    @classmethod
    def validate_end_date(cls, value: Optional[date], info: ValidationInfo) -> Optional[date]:
        start = info.data.get("start_date")
        if value is not None and start is not None and value < start:
            raise ValueError("end_date must be on or after start_date")
        return value


class Trip(TimestampMixin):
    id: int
    agency_id: int
    owner_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    currency: str
    timezone: Optional[str] = None


class ItineraryDayCreate(BaseModel):
    date: Optional[dt.date] = Field(None, description="Leave empty for a TBD day")
    day_number: Optional[int] = Field(
        None, description="Required for TBD days, derived from the date otherwise"
    )
    title: Optional[str] = None

    @field_validator("day_number")
    @classmethod
    def validate_day_number(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value <= 0:
            raise ValueError("day_number must be greater than zero")
        return value


class Coordinates(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class ActivityPricing(BaseModel):
    pricing_type: str
    currency: str
    total_price_cents: Optional[int] = None
    taxes_and_fees_cents: Optional[int] = None
    commission_total_cents: Optional[int] = None
    commission_split_percentage: Optional[Decimal] = None

    model_config = ConfigDict(from_attributes=True)


class ActivityCreate(BaseModel):
    """Fields shared by every creation path, including pricing and the detail bag."""

    itinerary_day_id: Optional[int] = None
    parent_activity_id: Optional[int] = None
    component_type: str = Field(..., min_length=1, max_length=50)
    activity_type: Optional[str] = Field(
        None, description="Domain-facing type, defaults to the component type"
    )
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    sequence_order: int = Field(0, ge=0)
    status: str = DEFAULT_ACTIVITY_STATUS
    start_datetime: Optional[str] = Field(
        None, description="ISO datetime; offset-less values are kept as local clock time"
    )
    end_datetime: Optional[str] = None
    timezone: Optional[str] = None
    location: Optional[str] = None
    address: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    notes: Optional[str] = None
    confirmation_number: Optional[str] = None
    pricing_type: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    total_price_cents: Optional[int] = None
    taxes_and_fees_cents: Optional[int] = None
    commission_total_cents: Optional[int] = None
    commission_split_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    details: Optional[Dict[str, Any]] = Field(
        None, description="Type-specific details for orchestrated component types"
    )

    def has_pricing(self) -> bool:
        return any(
            value is not None
            for value in (
                self.total_price_cents,
                self.taxes_and_fees_cents,
                self.commission_total_cents,
                self.commission_split_percentage,
            )
        )


class Activity(TimestampMixin):
    id: int
    agency_id: int
    itinerary_day_id: Optional[int] = None
    parent_activity_id: Optional[int] = None
    component_type: str
    activity_type: str
    name: str
    description: Optional[str] = None
    sequence_order: int
    status: str
    start_datetime: Optional[datetime] = None
    end_datetime: Optional[datetime] = None
    timezone: Optional[str] = None
    location: Optional[str] = None
    address: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    notes: Optional[str] = None
    confirmation_number: Optional[str] = None
    pricing_type: Optional[str] = None
    currency: str
    pricing: Optional[ActivityPricing] = None


class ItineraryDay(TimestampMixin):
    id: int
    itinerary_id: int
    day_number: int
    date: Optional[dt.date] = None
    title: Optional[str] = None
    sequence_order: int
    activities: List[Activity] = Field(default_factory=list)


class ItineraryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    status: str = "draft"


class Itinerary(TimestampMixin):
    id: int
    trip_id: int
    name: str
    description: Optional[str] = None
    status: str
    sequence_order: int
    days: List[ItineraryDay] = Field(default_factory=list)


# Type-specific detail shapes


class ActivityDetailsBase(BaseModel):
    model_config = ConfigDict(extra="ignore", from_attributes=True)


class FlightDetailsData(ActivityDetailsBase):
    airline: Optional[str] = None
    flight_number: Optional[str] = Field(None, max_length=20)
    departure_airport_code: Optional[str] = Field(None, min_length=3, max_length=3)
    arrival_airport_code: Optional[str] = Field(None, min_length=3, max_length=3)
    departure_time: Optional[str] = None
    arrival_time: Optional[str] = None
    departure_timezone: Optional[str] = None
    arrival_timezone: Optional[str] = None
    cabin_class: Optional[str] = None
    terminal: Optional[str] = None
    gate: Optional[str] = None

    @field_validator("departure_time", "arrival_time")
    @classmethod
    def validate_times(cls, value: Optional[str]) -> Optional[str]:
        return _validate_time_of_day(value)

    @field_validator("departure_airport_code", "arrival_airport_code")
    @classmethod
    def normalize_airport_code(cls, value: Optional[str]) -> Optional[str]:
        return value.upper() if value else value


class LodgingDetailsData(ActivityDetailsBase):
    property_name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    check_in_time: Optional[str] = None
    check_out_time: Optional[str] = None
    nights: Optional[int] = Field(None, ge=0)
    room_type: Optional[str] = None
    room_count: Optional[int] = Field(None, ge=1)
    amenities: List[str] = Field(default_factory=list)
    special_requests: Optional[str] = None

    @field_validator("check_in_time", "check_out_time")
    @classmethod
    def validate_times(cls, value: Optional[str]) -> Optional[str]:
        return _validate_time_of_day(value)


class TransportationDetailsData(ActivityDetailsBase):
    subtype: Optional[str] = None
    provider_name: Optional[str] = None
    provider_phone: Optional[str] = None
    vehicle_type: Optional[str] = None
    vehicle_capacity: Optional[int] = Field(None, ge=1)
    pickup_address: Optional[str] = None
    pickup_time: Optional[str] = None
    pickup_timezone: Optional[str] = None
    dropoff_address: Optional[str] = None
    dropoff_time: Optional[str] = None
    dropoff_timezone: Optional[str] = None
    driver_name: Optional[str] = None
    is_round_trip: bool = False
    special_requests: Optional[str] = None

    @field_validator("pickup_time", "dropoff_time")
    @classmethod
    def validate_times(cls, value: Optional[str]) -> Optional[str]:
        return _validate_time_of_day(value)

    @field_validator("subtype")
    @classmethod
    def validate_subtype(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in TRANSPORTATION_SUBTYPES:
            raise ValueError(
                f"Invalid transportation subtype: {value}. "
                f"Must be one of: {', '.join(TRANSPORTATION_SUBTYPES)}"
            )
        return value


class DiningDetailsData(ActivityDetailsBase):
    restaurant_name: Optional[str] = None
    cuisine_type: Optional[str] = None
    meal_type: Optional[str] = None
    reservation_time: Optional[str] = None
    party_size: Optional[int] = None
    dress_code: Optional[str] = None
    price_range: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    dietary_requirements: List[str] = Field(default_factory=list)
    special_requests: Optional[str] = None

    @field_validator("reservation_time")
    @classmethod
    def validate_times(cls, value: Optional[str]) -> Optional[str]:
        return _validate_time_of_day(value)


class PortInfoDetailsData(ActivityDetailsBase):
    port_name: Optional[str] = None
    port_location: Optional[str] = None
    arrival_time: Optional[str] = None
    departure_time: Optional[str] = None
    timezone: Optional[str] = None
    dock_name: Optional[str] = None
    tender_required: bool = False
    excursion_notes: Optional[str] = None

    @field_validator("arrival_time", "departure_time")
    @classmethod
    def validate_times(cls, value: Optional[str]) -> Optional[str]:
        return _validate_time_of_day(value)


class OptionsDetailsData(ActivityDetailsBase):
    option_category: Optional[str] = None
    is_selected: bool = False
    duration_minutes: Optional[int] = Field(None, ge=0)
    meeting_point: Optional[str] = None
    meeting_time: Optional[str] = None
    min_participants: Optional[int] = Field(None, ge=1)
    max_participants: Optional[int] = Field(None, ge=1)
    provider_name: Optional[str] = None
    inclusions: List[str] = Field(default_factory=list)
    exclusions: List[str] = Field(default_factory=list)
    display_order: Optional[int] = None

    @field_validator("meeting_time")
    @classmethod
    def validate_times(cls, value: Optional[str]) -> Optional[str]:
        return _validate_time_of_day(value)

    @field_validator("max_participants")
    @classmethod
    def validate_participant_range(cls, value: Optional[int], info: ValidationInfo) -> Optional[int]:
        minimum = info.data.get("min_participants")
        if value is not None and minimum is not None and value < minimum:
            raise ValueError("max_participants must be at least min_participants")
        return value


class CustomCruiseDetailsData(ActivityDetailsBase):
    source: Literal["traveltek", "manual"] = "manual"
    cruise_line_name: Optional[str] = None
    ship_name: Optional[str] = None
    itinerary_name: Optional[str] = None
    region: Optional[str] = None
    nights: Optional[int] = Field(None, ge=0)
    sea_days: Optional[int] = Field(None, ge=0)
    departure_port: Optional[str] = None
    departure_time: Optional[str] = None
    arrival_port: Optional[str] = None
    arrival_time: Optional[str] = None
    cabin_category: Optional[str] = None
    cabin_code: Optional[str] = None
    fare_code: Optional[str] = None

    @field_validator("departure_time", "arrival_time")
    @classmethod
    def validate_times(cls, value: Optional[str]) -> Optional[str]:
        return _validate_time_of_day(value)

    @field_validator("cabin_category")
    @classmethod
    def validate_cabin_category(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in CABIN_CATEGORIES:
            raise ValueError(f"cabin_category must be one of: {', '.join(CABIN_CATEGORIES)}")
        return value


# Template payloads (portable, camelCase on the wire)


class TemplateModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TemplatePricing(TemplateModel):
    total_price_cents: Optional[int] = None
    currency: Optional[str] = Field(None, max_length=3)
    taxes_cents: Optional[int] = None
    commission_amount_cents: Optional[int] = None
    commission_split_percent: Optional[float] = None


class TemplateActivity(TemplateModel):
    component_type: str = Field(..., min_length=1)
    activity_type: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    sequence_order: int = Field(0, ge=0)
    start_time: Optional[str] = Field(None, description="Local HH:MM, no date")
    end_time: Optional[str] = Field(None, description="Local HH:MM, no date")
    timezone: Optional[str] = None
    location: Optional[str] = None
    address: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    notes: Optional[str] = None
    confirmation_number: Optional[str] = None
    pricing: Optional[TemplatePricing] = None
    details: Optional[Dict[str, Any]] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, value: Optional[str]) -> Optional[str]:
        return _validate_time_of_day(value)


class TemplateDayOffset(TemplateModel):
    day_index: int = Field(..., description="Days from the anchor, zero being the anchor")
    activities: List[TemplateActivity] = Field(default_factory=list)


class ItineraryTemplatePayload(TemplateModel):
    day_offsets: List[TemplateDayOffset] = Field(default_factory=list)


class PackageMetadata(TemplateModel):
    name: str = Field(..., min_length=1)
    pricing_type: Literal["flat_rate", "per_person"] = "flat_rate"
    total_price_cents: Optional[int] = None
    currency: Optional[str] = Field(None, max_length=3)


class PackageTemplatePayload(TemplateModel):
    package_metadata: Optional[PackageMetadata] = None
    day_offsets: Optional[List[TemplateDayOffset]] = None


# Template registry


class TemplateCreateBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    is_agency_template: bool = Field(
        False, description="Agency-wide template, only admins may create one"
    )


class ItineraryTemplateCreate(TemplateCreateBase):
    payload: ItineraryTemplatePayload


class PackageTemplateCreate(TemplateCreateBase):
    payload: PackageTemplatePayload


class ItineraryTemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    payload: Optional[ItineraryTemplatePayload] = None
    is_active: Optional[bool] = None


class PackageTemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    payload: Optional[PackageTemplatePayload] = None
    is_active: Optional[bool] = None


class TemplateSummary(TimestampMixin):
    id: int
    agency_id: int
    name: str
    description: Optional[str] = None
    is_active: bool
    created_by: Optional[int] = None
    day_count: int = 0
    activity_count: int = 0


class ItineraryTemplate(TemplateSummary):
    payload: ItineraryTemplatePayload


class PackageTemplate(TemplateSummary):
    payload: PackageTemplatePayload


class ItineraryTemplateList(BaseModel):
    data: List[ItineraryTemplate]
    total: int


class PackageTemplateList(BaseModel):
    data: List[PackageTemplate]
    total: int


class TemplateListQuery(BaseModel):
    search: Optional[str] = None
    is_active: Optional[bool] = None
    limit: int = Field(DEFAULT_TEMPLATE_LIST_LIMIT, ge=1, le=MAX_TEMPLATE_LIST_LIMIT)
    offset: int = Field(0, ge=0)


# Save / apply


class SaveAsTemplateRequest(TemplateCreateBase):
    pass


class ApplyItineraryTemplateRequest(BaseModel):
    anchor_day: Optional[str] = Field(
        None, description="ISO date (YYYY-MM-DD), defaults to the trip start date"
    )


class ApplyPackageTemplateRequest(BaseModel):
    anchor_day_id: int = Field(..., description="Existing day the package starts on")


class ItineraryTemplateApplication(BaseModel):
    itinerary_id: int
    warnings: List[str] = Field(default_factory=list)


class PackageTemplateApplication(BaseModel):
    package_id: int
    warnings: List[str] = Field(default_factory=list)
