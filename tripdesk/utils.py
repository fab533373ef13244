"""Utility helpers for calendar arithmetic and clock-time handling."""
from __future__ import annotations

import re
import secrets
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def slugify(value: str) -> str:
    value = value.lower()
    value = re.sub(r"[^a-z0-9]+", "-", value)
    value = re.sub(r"-+", "-", value)
    return value.strip("-") or secrets.token_hex(4)


def extract_time_of_day(value: Optional[datetime]) -> Optional[str]:
    """Return the ``HH:MM`` clock reading of a stored datetime.

    Aware values are read in UTC; naive values are read as stored. The
    activity's timezone label is never applied here.
    """

    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return f"{value.hour:02d}:{value.minute:02d}"


def combine_date_and_time(day_date: date, time_of_day: str) -> str:
    """Build the offset-less local datetime string ``YYYY-MM-DDTHH:MM:00``."""

    return f"{day_date:%Y-%m-%d}T{time_of_day}:00"


def parse_local_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO datetime string into a naive datetime, or ``None`` if invalid.

    Values carrying an offset (including a trailing ``Z``) are normalized to
    naive UTC so their clock fields match what gets stored.
    """

    if not value:
        return None
    candidate = value.strip()
    if candidate.endswith(("Z", "z")):
        candidate = candidate[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def calendar_day_offset(anchor: date, target: date) -> int:
    """Whole calendar days from ``anchor`` to ``target``."""

    if isinstance(anchor, datetime):
        anchor = anchor.date()
    if isinstance(target, datetime):
        target = target.date()
    return (target - anchor).days


def add_days(anchor: date, days: int) -> date:
    return anchor + timedelta(days=days)


def is_valid_timezone(name: str) -> bool:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return False
    return True
