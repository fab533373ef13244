"""SQLAlchemy models for the Tripdesk backend."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import backref, declared_attr, relationship

from .database import Base


class TimestampMixin:
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class TravelAgency(Base, TimestampMixin):
    __tablename__ = "travel_agencies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), nullable=False, unique=True)
    slug = Column(String(160), nullable=False, unique=True)
    default_currency = Column(String(3), nullable=False, default="CAD")

    users = relationship("User", back_populates="agency", cascade="all, delete-orphan")
    trips = relationship("Trip", back_populates="agency")


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(120), nullable=False, unique=True)
    full_name = Column(String(120), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    is_admin = Column(Boolean, nullable=False, default=False)
    agency_id = Column(Integer, ForeignKey("travel_agencies.id"), nullable=False)

    agency = relationship("TravelAgency", back_populates="users")


class Trip(Base, TimestampMixin):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True)
    agency_id = Column(Integer, ForeignKey("travel_agencies.id"), nullable=False, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    currency = Column(String(3), nullable=False, default="CAD")
    timezone = Column(String(64), nullable=True, doc="IANA timezone identifier")

    agency = relationship("TravelAgency", back_populates="trips")
    owner = relationship("User")
    itineraries = relationship(
        "Itinerary",
        back_populates="trip",
        cascade="all, delete-orphan",
        order_by="Itinerary.sequence_order",
    )

    __table_args__ = (
        CheckConstraint(
            "end_date IS NULL OR start_date IS NULL OR end_date >= start_date",
            name="ck_trips_dates",
        ),
    )


class Itinerary(Base, TimestampMixin):
    __tablename__ = "itineraries"

    id = Column(Integer, primary_key=True, index=True)
    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(50), nullable=False, default="draft")
    sequence_order = Column(Integer, nullable=False, default=0)

    trip = relationship("Trip", back_populates="itineraries")
    days = relationship(
        "ItineraryDay",
        back_populates="itinerary",
        cascade="all, delete-orphan",
        order_by="ItineraryDay.sequence_order",
    )


class ItineraryDay(Base, TimestampMixin):
    __tablename__ = "itinerary_days"

    id = Column(Integer, primary_key=True, index=True)
    itinerary_id = Column(
        Integer, ForeignKey("itineraries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    day_number = Column(Integer, nullable=False)
    date = Column(Date, nullable=True, doc="Null for TBD days ordered only by day_number")
    title = Column(String(255), nullable=True)
    sequence_order = Column(Integer, nullable=False, default=0)

    itinerary = relationship("Itinerary", back_populates="days")
    activities = relationship(
        "Activity",
        back_populates="day",
        cascade="all, delete-orphan",
        order_by="Activity.sequence_order",
    )


class Activity(Base, TimestampMixin):
    __tablename__ = "itinerary_activities"

    id = Column(Integer, primary_key=True, index=True)
    agency_id = Column(Integer, ForeignKey("travel_agencies.id"), nullable=False)
    itinerary_day_id = Column(
        Integer,
        ForeignKey("itinerary_days.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
        doc="Null for floating activities not pinned to a day",
    )
    parent_activity_id = Column(
        Integer,
        ForeignKey("itinerary_activities.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
        doc="Links child activities to their package",
    )
    component_type = Column(String(50), nullable=False)
    activity_type = Column(String(50), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    sequence_order = Column(Integer, nullable=False, default=0)
    status = Column(String(50), nullable=False, default="proposed")
    start_datetime = Column(DateTime, nullable=True)
    end_datetime = Column(DateTime, nullable=True)
    timezone = Column(String(64), nullable=True)
    location = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    coordinates = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    confirmation_number = Column(String(255), nullable=True)
    pricing_type = Column(String(50), nullable=True)
    currency = Column(String(3), nullable=False, default="CAD")

    day = relationship("ItineraryDay", back_populates="activities")
    parent = relationship("Activity", remote_side=[id], back_populates="children")
    children = relationship(
        "Activity",
        back_populates="parent",
        cascade="all, delete-orphan",
        order_by="Activity.sequence_order",
    )
    pricing = relationship(
        "ActivityPricing",
        back_populates="activity",
        uselist=False,
        cascade="all, delete-orphan",
    )


class ActivityPricing(Base, TimestampMixin):
    __tablename__ = "activity_pricing"

    id = Column(Integer, primary_key=True, index=True)
    activity_id = Column(
        Integer,
        ForeignKey("itinerary_activities.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    agency_id = Column(Integer, ForeignKey("travel_agencies.id"), nullable=False)
    pricing_type = Column(String(50), nullable=False, default="per_person")
    currency = Column(String(3), nullable=False, default="CAD")
    total_price_cents = Column(Integer, nullable=True)
    taxes_and_fees_cents = Column(Integer, nullable=True)
    commission_total_cents = Column(Integer, nullable=True)
    commission_split_percentage = Column(Numeric(5, 2), nullable=True)

    activity = relationship("Activity", back_populates="pricing")


class ActivityDetailMixin(TimestampMixin):
    """One-to-one, type-specific extension of an activity."""

    id = Column(Integer, primary_key=True, index=True)

    @declared_attr
    def activity_id(cls):
        return Column(
            Integer,
            ForeignKey("itinerary_activities.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
            index=True,
        )

    @declared_attr
    def activity(cls):
        # Exposed on Activity under the table name, e.g. ``activity.flight_details``.
        return relationship(
            "Activity",
            backref=backref(cls.__tablename__, uselist=False, cascade="all, delete-orphan"),
        )


class FlightDetails(Base, ActivityDetailMixin):
    __tablename__ = "flight_details"

    airline = Column(String(255), nullable=True)
    flight_number = Column(String(20), nullable=True)
    departure_airport_code = Column(String(3), nullable=True)
    arrival_airport_code = Column(String(3), nullable=True)
    departure_time = Column(String(5), nullable=True, doc="Local HH:MM")
    arrival_time = Column(String(5), nullable=True, doc="Local HH:MM")
    departure_timezone = Column(String(64), nullable=True)
    arrival_timezone = Column(String(64), nullable=True)
    cabin_class = Column(String(50), nullable=True)
    terminal = Column(String(20), nullable=True)
    gate = Column(String(20), nullable=True)


class LodgingDetails(Base, ActivityDetailMixin):
    __tablename__ = "lodging_details"

    property_name = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    phone = Column(String(50), nullable=True)
    website = Column(String(255), nullable=True)
    check_in_time = Column(String(5), nullable=True)
    check_out_time = Column(String(5), nullable=True)
    nights = Column(Integer, nullable=True)
    room_type = Column(String(255), nullable=True)
    room_count = Column(Integer, nullable=True)
    amenities = Column(JSON, nullable=True)
    special_requests = Column(Text, nullable=True)


class TransportationDetails(Base, ActivityDetailMixin):
    __tablename__ = "transportation_details"

    subtype = Column(String(50), nullable=True)
    provider_name = Column(String(255), nullable=True)
    provider_phone = Column(String(50), nullable=True)
    vehicle_type = Column(String(100), nullable=True)
    vehicle_capacity = Column(Integer, nullable=True)
    pickup_address = Column(Text, nullable=True)
    pickup_time = Column(String(5), nullable=True)
    pickup_timezone = Column(String(64), nullable=True)
    dropoff_address = Column(Text, nullable=True)
    dropoff_time = Column(String(5), nullable=True)
    dropoff_timezone = Column(String(64), nullable=True)
    driver_name = Column(String(255), nullable=True)
    is_round_trip = Column(Boolean, nullable=False, default=False)
    special_requests = Column(Text, nullable=True)


class DiningDetails(Base, ActivityDetailMixin):
    __tablename__ = "dining_details"

    restaurant_name = Column(String(255), nullable=True)
    cuisine_type = Column(String(100), nullable=True)
    meal_type = Column(String(50), nullable=True)
    reservation_time = Column(String(5), nullable=True)
    party_size = Column(Integer, nullable=True)
    dress_code = Column(String(100), nullable=True)
    price_range = Column(String(20), nullable=True)
    phone = Column(String(50), nullable=True)
    website = Column(String(255), nullable=True)
    dietary_requirements = Column(JSON, nullable=True)
    special_requests = Column(Text, nullable=True)


class PortInfoDetails(Base, ActivityDetailMixin):
    __tablename__ = "port_info_details"

    port_name = Column(String(255), nullable=True)
    port_location = Column(String(255), nullable=True)
    arrival_time = Column(String(5), nullable=True)
    departure_time = Column(String(5), nullable=True)
    timezone = Column(String(64), nullable=True)
    dock_name = Column(String(255), nullable=True)
    tender_required = Column(Boolean, nullable=False, default=False)
    excursion_notes = Column(Text, nullable=True)


class OptionsDetails(Base, ActivityDetailMixin):
    __tablename__ = "options_details"

    option_category = Column(String(100), nullable=True)
    is_selected = Column(Boolean, nullable=False, default=False)
    duration_minutes = Column(Integer, nullable=True)
    meeting_point = Column(String(255), nullable=True)
    meeting_time = Column(String(5), nullable=True)
    min_participants = Column(Integer, nullable=True)
    max_participants = Column(Integer, nullable=True)
    provider_name = Column(String(255), nullable=True)
    inclusions = Column(JSON, nullable=True)
    exclusions = Column(JSON, nullable=True)
    display_order = Column(Integer, nullable=True)


class CustomCruiseDetails(Base, ActivityDetailMixin):
    __tablename__ = "custom_cruise_details"

    source = Column(String(50), nullable=False, default="manual")
    cruise_line_name = Column(String(255), nullable=True)
    ship_name = Column(String(255), nullable=True)
    itinerary_name = Column(String(255), nullable=True)
    region = Column(String(100), nullable=True)
    nights = Column(Integer, nullable=True)
    sea_days = Column(Integer, nullable=True)
    departure_port = Column(String(255), nullable=True)
    departure_time = Column(String(5), nullable=True)
    arrival_port = Column(String(255), nullable=True)
    arrival_time = Column(String(5), nullable=True)
    cabin_category = Column(String(50), nullable=True)
    cabin_code = Column(String(50), nullable=True)
    fare_code = Column(String(50), nullable=True)


class TemplateMixin(TimestampMixin):
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    payload = Column(JSON, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    @declared_attr
    def agency_id(cls):
        return Column(Integer, ForeignKey("travel_agencies.id"), nullable=False, index=True)

    @declared_attr
    def created_by(cls):
        return Column(
            Integer,
            ForeignKey("users.id"),
            nullable=True,
            doc="Null for agency-wide templates managed by admins",
        )


class ItineraryTemplate(Base, TemplateMixin):
    __tablename__ = "itinerary_templates"


class PackageTemplate(Base, TemplateMixin):
    __tablename__ = "package_templates"
