# studiobook/core/time_utils.py
"""
UTC helpers.

Every instant the booking core stores or compares is an aware UTC datetime.
Naive datetimes are rejected instead of guessed.
"""

from datetime import datetime, timezone
from typing import Callable

import pytz

from .exceptions import ValidationException

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime, field_name: str = "timestamp") -> datetime:
    """Normalize an aware datetime to UTC; reject naive ones."""
    if not isinstance(value, datetime):
        raise ValidationException(
            f"{field_name} must be a datetime",
            code="INVALID_TIMESTAMP",
            details={"field": field_name},
        )
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValidationException(
            f"{field_name} must include a timezone offset",
            code="NAIVE_TIMESTAMP",
            details={"field": field_name, "value": value.isoformat()},
        )
    return value.astimezone(timezone.utc)


def is_valid_timezone(name: str) -> bool:
    return name in pytz.all_timezones_set
