from __future__ import annotations

import pytest

from studiobook.core.exceptions import (
    EquipmentShortageException,
    NotFoundException,
    ValidationException,
)
from studiobook.schemas.booking import BookingUpdate, EquipmentLine


def _lines(**quantities):
    return [EquipmentLine(equipment_id=eid, quantity=qty) for eid, qty in quantities.items()]


def test_stock_is_available_when_nothing_is_reserved(equipment_ledger, microphones, when):
    result = equipment_ledger.check_equipment_availability(
        [EquipmentLine(equipment_id=microphones.id, quantity=3)], when(10), when(11)
    )
    assert result.available
    assert result.shortages == []


def test_overlapping_reservations_reduce_availability(
    book, equipment_ledger, microphones, when
):
    book(when(10), when(11), equipment={microphones.id: 2})

    short = equipment_ledger.check_equipment_availability(
        [EquipmentLine(equipment_id=microphones.id, quantity=2)], when(10, 30), when(11, 30)
    )
    assert not short.available
    assert [(s.equipment_id, s.requested, s.available_count) for s in short.shortages] == [
        (microphones.id, 2, 1)
    ]

    enough = equipment_ledger.check_equipment_availability(
        [EquipmentLine(equipment_id=microphones.id, quantity=1)], when(10, 30), when(11, 30)
    )
    assert enough.available


def test_adjacent_windows_share_nothing(book, equipment_ledger, microphones, when):
    book(when(10), when(11), equipment={microphones.id: 3})
    result = equipment_ledger.check_equipment_availability(
        [EquipmentLine(equipment_id=microphones.id, quantity=3)], when(11), when(12)
    )
    assert result.available


def test_cancellation_releases_equipment(
    book, booking_service, equipment_ledger, client, microphones, when
):
    booking = book(when(10), when(11), equipment={microphones.id: 3})
    booking_service.cancel_booking(client, booking.id)

    result = equipment_ledger.check_equipment_availability(
        [EquipmentLine(equipment_id=microphones.id, quantity=3)], when(10), when(11)
    )
    assert result.available


def test_every_shortage_is_reported(book, equipment_ledger, microphones, camera, when):
    book(when(10), when(11), equipment={microphones.id: 3, camera.id: 1})
    result = equipment_ledger.check_equipment_availability(
        [
            EquipmentLine(equipment_id=microphones.id, quantity=1),
            EquipmentLine(equipment_id=camera.id, quantity=1),
        ],
        when(10),
        when(11),
    )
    assert {s.equipment_id for s in result.shortages} == {microphones.id, camera.id}


def test_excluding_a_booking_returns_its_equipment(book, equipment_ledger, microphones, when):
    booking = book(when(10), when(11), equipment={microphones.id: 3})
    result = equipment_ledger.check_equipment_availability(
        [EquipmentLine(equipment_id=microphones.id, quantity=3)],
        when(10),
        when(11),
        exclude_booking_id=booking.id,
    )
    assert result.available


def test_duplicate_lines_count_together(equipment_ledger, microphones, when):
    result = equipment_ledger.check_equipment_availability(
        [
            EquipmentLine(equipment_id=microphones.id, quantity=2),
            EquipmentLine(equipment_id=microphones.id, quantity=2),
        ],
        when(10),
        when(11),
    )
    assert result.shortages[0].requested == 4


def test_unknown_equipment(equipment_ledger, when):
    with pytest.raises(NotFoundException):
        equipment_ledger.check_equipment_availability(
            [EquipmentLine(equipment_id="01NOSUCHITEM", quantity=1)], when(10), when(11)
        )


def test_non_positive_quantity(equipment_ledger, microphones, when):
    with pytest.raises(ValidationException):
        equipment_ledger.check_equipment_availability(
            [EquipmentLine(equipment_id=microphones.id, quantity=0)], when(10), when(11)
        )


def test_create_fails_with_shortage_naming_the_item(book, second_room, microphones, when):
    book(when(10), when(11), equipment={microphones.id: 2})

    with pytest.raises(EquipmentShortageException) as exc:
        book(when(10, 30), when(11, 30), room_id=second_room.id, equipment={microphones.id: 2})

    assert exc.value.shortages == [
        {"equipment_id": microphones.id, "requested": 2, "available_count": 1}
    ]
    assert microphones.id in exc.value.message


def test_update_rechecks_equipment(book, booking_service, staff, second_room, microphones, camera, when):
    first = book(when(10), when(11), equipment={microphones.id: 2})
    second = book(when(10), when(11), room_id=second_room.id, equipment={microphones.id: 1})

    with pytest.raises(EquipmentShortageException):
        booking_service.update_booking(
            staff, second.id, BookingUpdate(equipment=_lines(**{microphones.id: 2}))
        )

    updated = booking_service.update_booking(
        staff, first.id, BookingUpdate(equipment=_lines(**{microphones.id: 1, camera.id: 1}))
    )
    assert {(line.equipment_id, line.quantity) for line in updated.equipment_lines} == {
        (microphones.id, 1),
        (camera.id, 1),
    }

    # Freed by the edit above.
    grown = booking_service.update_booking(
        staff, second.id, BookingUpdate(equipment=_lines(**{microphones.id: 2}))
    )
    assert [(line.equipment_id, line.quantity) for line in grown.equipment_lines] == [
        (microphones.id, 2)
    ]


def test_dropping_all_equipment(book, booking_service, client, microphones, when):
    booking = book(when(10), when(11), equipment={microphones.id: 2})
    updated = booking_service.update_booking(client, booking.id, BookingUpdate(equipment=[]))
    assert updated.equipment_lines == []
