from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from studiobook.models.booking import Booking, BookingStatus
from studiobook.models.types import StringArrayType, UTCDateTime

SQLITE = SimpleNamespace(name="sqlite")
POSTGRES = SimpleNamespace(name="postgresql")


class TestUTCDateTime:
    def test_naive_values_are_refused(self):
        with pytest.raises(ValueError):
            UTCDateTime().process_bind_param(datetime(2026, 3, 9, 10), SQLITE)

    def test_sqlite_stores_naive_utc_and_loads_aware(self):
        local = datetime(2026, 3, 9, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        stored = UTCDateTime().process_bind_param(local, SQLITE)
        assert stored == datetime(2026, 3, 9, 10, 0)
        loaded = UTCDateTime().process_result_value(stored, SQLITE)
        assert loaded == local
        assert loaded.tzinfo is timezone.utc

    def test_postgres_keeps_the_offset(self):
        value = datetime(2026, 3, 9, 10, 0, tzinfo=timezone.utc)
        assert UTCDateTime().process_bind_param(value, POSTGRES) is not None


def test_string_array_round_trips_as_json_outside_postgres():
    column = StringArrayType()
    stored = column.process_bind_param(["b", "a"], SQLITE)
    assert stored == '["b", "a"]'
    assert column.process_result_value(stored, SQLITE) == ["b", "a"]


def test_booking_overlap_is_half_open():
    start = datetime(2026, 3, 9, 10, tzinfo=timezone.utc)
    booking = Booking(
        start_time=start, end_time=start + timedelta(hours=1), status=BookingStatus.PENDING.value
    )
    assert booking.overlaps(start + timedelta(minutes=30), start + timedelta(hours=2))
    assert not booking.overlaps(start + timedelta(hours=1), start + timedelta(hours=2))
    assert not booking.overlaps(start - timedelta(hours=1), start)
    assert booking.is_active and not booking.is_terminal
