# studiobook/services/booking_validation.py
"""
Explicit booking validators.

Each lifecycle operation calls these at its start, in order. They raise
domain exceptions and never touch the session, so they compose freely and
are unit-testable without a database.
"""

from datetime import datetime
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..core.exceptions import (
    InvalidRangeException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from ..core.time_utils import ensure_utc
from ..models.booking import TERMINAL_STATUSES, BookingStatus
from ..models.equipment import Equipment
from ..models.studio import Room
from ..schemas.booking import EquipmentLine

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[BookingStatus, frozenset] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}


def validate_time_range(
    start_time: datetime,
    end_time: datetime,
    *,
    min_minutes: Optional[int] = None,
    max_minutes: Optional[int] = None,
) -> Tuple[datetime, datetime]:
    """
    Normalize both ends to UTC and check start < end.

    Returns:
        (start_utc, end_utc)

    Raises:
        ValidationException: naive timestamps or duration outside bounds
        InvalidRangeException: start >= end
    """
    start = ensure_utc(start_time, "start_time")
    end = ensure_utc(end_time, "end_time")
    if start >= end:
        raise InvalidRangeException(start, end)

    minutes = (end - start).total_seconds() / 60
    if min_minutes is not None and minutes < min_minutes:
        raise ValidationException(
            f"Bookings must be at least {min_minutes} minutes long",
            code="BOOKING_TOO_SHORT",
            details={"duration_minutes": minutes, "min_minutes": min_minutes},
        )
    if max_minutes is not None and minutes > max_minutes:
        raise ValidationException(
            f"Bookings cannot be longer than {max_minutes} minutes",
            code="BOOKING_TOO_LONG",
            details={"duration_minutes": minutes, "max_minutes": max_minutes},
        )
    return start, end


def normalize_equipment_lines(lines: Iterable[EquipmentLine]) -> Dict[str, int]:
    """
    Merge requested lines into {equipment_id: quantity}.

    Duplicate ids are summed. Any quantity that is not a positive integer
    is rejected before the ledger is consulted.
    """
    merged: Dict[str, int] = {}
    for line in lines:
        qty = line.quantity
        if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
            raise ValidationException(
                "Equipment quantity must be a positive integer",
                code="INVALID_EQUIPMENT_QUANTITY",
                details={"equipment_id": line.equipment_id, "quantity": qty},
            )
        merged[line.equipment_id] = merged.get(line.equipment_id, 0) + qty
    return merged


def validate_room(room: Optional[Room], room_id: str, studio_id: Optional[str] = None) -> Room:
    if room is None:
        raise NotFoundException(f"Room {room_id} not found", code="ROOM_NOT_FOUND")
    if not room.is_active:
        raise ValidationException(
            "Room is not available for booking",
            code="ROOM_INACTIVE",
            details={"room_id": room_id},
        )
    if studio_id is not None and room.studio_id != studio_id:
        raise ValidationException(
            "Room does not belong to the requested studio",
            code="ROOM_STUDIO_MISMATCH",
            details={"room_id": room_id, "studio_id": studio_id},
        )
    return room


def validate_attendees(attendees: int, room: Room) -> None:
    if isinstance(attendees, bool) or not isinstance(attendees, int) or attendees < 1:
        raise ValidationException(
            "Attendees must be at least 1",
            code="INVALID_ATTENDEES",
            details={"attendees": attendees},
        )
    if room.capacity is not None and attendees > room.capacity:
        raise ValidationException(
            f"Room capacity is {room.capacity}",
            code="ROOM_CAPACITY_EXCEEDED",
            details={"attendees": attendees, "capacity": room.capacity},
        )


def validate_equipment_rows(
    requested: Mapping[str, int],
    rows: Sequence[Equipment],
    studio_id: Optional[str] = None,
) -> Dict[str, Equipment]:
    """Every requested id must exist, be active, and belong to the studio."""
    by_id = {row.id: row for row in rows if row.is_active}
    missing: List[str] = [eid for eid in requested if eid not in by_id]
    if missing:
        raise NotFoundException(
            f"Equipment not found: {', '.join(sorted(missing))}",
            code="EQUIPMENT_NOT_FOUND",
            details={"equipment_ids": sorted(missing)},
        )
    if studio_id is not None:
        foreign = sorted(eid for eid, row in by_id.items() if row.studio_id != studio_id)
        if foreign:
            raise ValidationException(
                "Equipment belongs to a different studio",
                code="EQUIPMENT_STUDIO_MISMATCH",
                details={"equipment_ids": foreign, "studio_id": studio_id},
            )
    return by_id


def validate_staff_ids(staff_ids: Sequence[str], found_ids: Iterable[str]) -> List[str]:
    """Keep the given order; reject duplicates and ids that are not staff or admin users."""
    if len(set(staff_ids)) != len(staff_ids):
        raise ValidationException("Staff assignments contain duplicates", code="DUPLICATE_STAFF")
    found = set(found_ids)
    unknown = [sid for sid in staff_ids if sid not in found]
    if unknown:
        raise ValidationException(
            "Assigned staff must be staff or admin users",
            code="INVALID_STAFF_ASSIGNMENT",
            details={"staff_ids": unknown},
        )
    return list(staff_ids)


def validate_status_transition(
    current: BookingStatus,
    target: BookingStatus,
    *,
    end_time: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> None:
    """
    Enforce the forward-only status graph.

    ``confirmed -> completed`` additionally requires the booking to have ended.
    """
    current = BookingStatus(current)
    target = BookingStatus(target)
    if current in TERMINAL_STATUSES:
        raise InvalidTransitionException(current.value, target.value, "booking is closed")
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionException(current.value, target.value)
    if target == BookingStatus.COMPLETED and end_time is not None and now is not None:
        if now < end_time:
            raise InvalidTransitionException(
                current.value, target.value, "booking has not ended yet"
            )
