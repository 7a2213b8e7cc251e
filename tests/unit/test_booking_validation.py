from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from studiobook.core.exceptions import (
    InvalidRangeException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from studiobook.models.booking import BookingStatus
from studiobook.schemas.booking import EquipmentLine
from studiobook.services.booking_validation import (
    normalize_equipment_lines,
    validate_attendees,
    validate_equipment_rows,
    validate_room,
    validate_staff_ids,
    validate_status_transition,
    validate_time_range,
)

UTC = timezone.utc


class TestValidateTimeRange:
    def test_normalizes_offsets_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        start, end = validate_time_range(
            datetime(2026, 3, 9, 12, 0, tzinfo=plus_two),
            datetime(2026, 3, 9, 13, 0, tzinfo=plus_two),
        )
        assert start == datetime(2026, 3, 9, 10, 0, tzinfo=UTC)
        assert end.utcoffset() == timedelta(0)

    @pytest.mark.parametrize("minutes", [0, -30])
    def test_empty_or_inverted_range_is_rejected(self, minutes):
        start = datetime(2026, 3, 9, 10, 0, tzinfo=UTC)
        with pytest.raises(InvalidRangeException) as exc:
            validate_time_range(start, start + timedelta(minutes=minutes))
        assert exc.value.code == "INVALID_TIME_RANGE"

    def test_naive_timestamps_are_rejected(self):
        with pytest.raises(ValidationException) as exc:
            validate_time_range(datetime(2026, 3, 9, 10), datetime(2026, 3, 9, 11))
        assert exc.value.code == "NAIVE_TIMESTAMP"
        assert exc.value.details["field"] == "start_time"

    def test_duration_bounds(self):
        start = datetime(2026, 3, 9, 10, 0, tzinfo=UTC)
        with pytest.raises(ValidationException) as short:
            validate_time_range(start, start + timedelta(minutes=10), min_minutes=15)
        assert short.value.code == "BOOKING_TOO_SHORT"

        with pytest.raises(ValidationException) as long:
            validate_time_range(start, start + timedelta(hours=25), max_minutes=24 * 60)
        assert long.value.code == "BOOKING_TOO_LONG"

        assert validate_time_range(start, start + timedelta(minutes=15), min_minutes=15)


class TestNormalizeEquipmentLines:
    def test_duplicates_are_summed(self):
        merged = normalize_equipment_lines(
            [
                EquipmentLine(equipment_id="mic", quantity=1),
                EquipmentLine(equipment_id="cam", quantity=1),
                EquipmentLine(equipment_id="mic", quantity=2),
            ]
        )
        assert merged == {"mic": 3, "cam": 1}

    def test_empty_request(self):
        assert normalize_equipment_lines([]) == {}

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantity_is_rejected(self, quantity):
        with pytest.raises(ValidationException) as exc:
            normalize_equipment_lines([EquipmentLine(equipment_id="mic", quantity=quantity)])
        assert exc.value.code == "INVALID_EQUIPMENT_QUANTITY"
        assert exc.value.details == {"equipment_id": "mic", "quantity": quantity}


class TestRoomAndAttendees:
    def test_missing_room(self):
        with pytest.raises(NotFoundException):
            validate_room(None, "r1")

    def test_inactive_room(self):
        room = SimpleNamespace(id="r1", studio_id="s1", is_active=False, capacity=None)
        with pytest.raises(ValidationException) as exc:
            validate_room(room, "r1")
        assert exc.value.code == "ROOM_INACTIVE"

    def test_room_from_other_studio(self):
        room = SimpleNamespace(id="r1", studio_id="s1", is_active=True, capacity=None)
        with pytest.raises(ValidationException) as exc:
            validate_room(room, "r1", "s2")
        assert exc.value.code == "ROOM_STUDIO_MISMATCH"
        assert validate_room(room, "r1", "s1") is room

    def test_capacity(self):
        room = SimpleNamespace(capacity=4)
        validate_attendees(4, room)
        with pytest.raises(ValidationException) as exc:
            validate_attendees(5, room)
        assert exc.value.code == "ROOM_CAPACITY_EXCEEDED"

    def test_unbounded_room_still_needs_an_attendee(self):
        room = SimpleNamespace(capacity=None)
        validate_attendees(250, room)
        with pytest.raises(ValidationException):
            validate_attendees(0, room)


def test_equipment_rows_must_exist_be_active_and_local():
    rows = [
        SimpleNamespace(id="mic", studio_id="s1", is_active=True),
        SimpleNamespace(id="old", studio_id="s1", is_active=False),
        SimpleNamespace(id="far", studio_id="s2", is_active=True),
    ]
    with pytest.raises(NotFoundException) as missing:
        validate_equipment_rows({"mic": 1, "old": 1, "ghost": 1}, rows)
    assert missing.value.details["equipment_ids"] == ["ghost", "old"]

    with pytest.raises(ValidationException) as foreign:
        validate_equipment_rows({"mic": 1, "far": 1}, rows, "s1")
    assert foreign.value.details["equipment_ids"] == ["far"]

    assert set(validate_equipment_rows({"mic": 2}, rows, "s1")) == {"mic"}


def test_staff_ids_keep_order_and_reject_unknown_or_duplicates():
    assert validate_staff_ids(["b", "a"], ["a", "b"]) == ["b", "a"]
    with pytest.raises(ValidationException) as dup:
        validate_staff_ids(["a", "a"], ["a"])
    assert dup.value.code == "DUPLICATE_STAFF"
    with pytest.raises(ValidationException) as unknown:
        validate_staff_ids(["a", "client"], ["a"])
    assert unknown.value.details["staff_ids"] == ["client"]


class TestStatusTransitions:
    @pytest.mark.parametrize(
        "current,target",
        [
            (BookingStatus.PENDING, BookingStatus.CONFIRMED),
            (BookingStatus.PENDING, BookingStatus.CANCELLED),
            (BookingStatus.CONFIRMED, BookingStatus.CANCELLED),
            (BookingStatus.CONFIRMED, BookingStatus.COMPLETED),
        ],
    )
    def test_allowed(self, current, target):
        validate_status_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (BookingStatus.PENDING, BookingStatus.COMPLETED),
            (BookingStatus.CONFIRMED, BookingStatus.PENDING),
            (BookingStatus.CANCELLED, BookingStatus.PENDING),
            (BookingStatus.CANCELLED, BookingStatus.CONFIRMED),
            (BookingStatus.COMPLETED, BookingStatus.CANCELLED),
            (BookingStatus.COMPLETED, BookingStatus.CONFIRMED),
        ],
    )
    def test_rejected(self, current, target):
        with pytest.raises(InvalidTransitionException) as exc:
            validate_status_transition(current, target)
        assert exc.value.details == {"from": current.value, "to": target.value}

    def test_complete_requires_the_booking_to_have_ended(self):
        end = datetime(2026, 3, 9, 11, 0, tzinfo=UTC)
        with pytest.raises(InvalidTransitionException):
            validate_status_transition(
                BookingStatus.CONFIRMED,
                BookingStatus.COMPLETED,
                end_time=end,
                now=end - timedelta(minutes=1),
            )
        validate_status_transition(
            BookingStatus.CONFIRMED, BookingStatus.COMPLETED, end_time=end, now=end
        )

    def test_accepts_plain_status_strings(self):
        validate_status_transition("pending", "confirmed")
