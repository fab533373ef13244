"""Application-wide constants and defaults."""
from __future__ import annotations

import os

APP_NAME = "Tripdesk"

LOG_LEVEL = os.getenv("TRIPDESK_LOG_LEVEL", "INFO").upper()

DEFAULT_CURRENCY = "CAD"
DEFAULT_ACTIVITY_STATUS = "proposed"
DEFAULT_ITINERARY_STATUS = "draft"
DEFAULT_PACKAGE_PRICING_TYPE = "flat_rate"

PACKAGE_ACTIVITY_TYPE = "package"

# Component types that are created through the generic path without a warning.
BASE_COMPONENT_TYPES: tuple[str, ...] = ("tour", "cruise", PACKAGE_ACTIVITY_TYPE)

ACTIVITY_STATUSES: tuple[str, ...] = ("proposed", "confirmed", "cancelled", "optional")

PACKAGE_PRICING_TYPES: tuple[str, ...] = ("flat_rate", "per_person")

TRANSPORTATION_SUBTYPES: tuple[str, ...] = (
    "transfer",
    "car_rental",
    "private_car",
    "taxi",
    "shuttle",
    "train",
    "bus",
    "ferry",
    "other",
)

CABIN_CATEGORIES: tuple[str, ...] = ("suite", "balcony", "oceanview", "inside")

# Identifier and audit columns never copied into a template detail bag.
STRIPPED_DETAIL_COLUMNS: frozenset[str] = frozenset(
    {"id", "activity_id", "created_at", "updated_at"}
)

DEFAULT_TEMPLATE_LIST_LIMIT = 50
MAX_TEMPLATE_LIST_LIMIT = 200
