from __future__ import annotations

import pytest

from studiobook.core.enums import ROLE_CAPABILITIES, PermissionName, RoleName
from studiobook.core.exceptions import (
    BookingConflictException,
    EquipmentShortageException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    OverRefundException,
    ResourceBusyException,
    StoreTransactionAbortedException,
    ValidationException,
    is_transaction_abort,
)
from studiobook.principal import ActorContext


@pytest.mark.parametrize(
    "exc,status_code,code",
    [
        (ValidationException("bad"), 400, "ValidationException"),
        (NotFoundException("gone", code="ROOM_NOT_FOUND"), 404, "ROOM_NOT_FOUND"),
        (BookingConflictException(conflicts=[{"id": "b1"}]), 409, "BOOKING_CONFLICT"),
        (EquipmentShortageException([{"equipment_id": "mic"}]), 409, "EQUIPMENT_SHORTAGE"),
        (ResourceBusyException("room:r1", 5.0), 409, "RESOURCE_BUSY"),
        (InvalidTransitionException("cancelled", "confirmed"), 422, "INVALID_STATUS_TRANSITION"),
        (OverRefundException("50.00", "20.00"), 422, "OVER_REFUND"),
        (StoreTransactionAbortedException(), 503, "STORE_TRANSACTION_ABORTED"),
    ],
)
def test_to_http_exception(exc, status_code, code):
    http_exc = exc.to_http_exception()
    assert http_exc.status_code == status_code
    assert http_exc.detail["code"] == code
    assert http_exc.detail["message"] == exc.message


def test_conflict_and_shortage_payloads():
    conflict = BookingConflictException(conflicts=[{"id": "b1"}], details={"room_id": "r1"})
    assert conflict.conflicts == [{"id": "b1"}]
    assert conflict.details["room_id"] == "r1"

    shortage = EquipmentShortageException(
        [{"equipment_id": "mic", "requested": 2, "available_count": 1}]
    )
    assert "mic" in shortage.message
    assert shortage.shortages[0]["available_count"] == 1


def test_only_contention_errors_are_retryable():
    assert ResourceBusyException("room:r1", 1.0).retryable
    assert StoreTransactionAbortedException().retryable
    assert not BookingConflictException().retryable


@pytest.mark.parametrize(
    "message,expected",
    [
        ("(sqlite3.OperationalError) database is locked", True),
        ("ERROR: deadlock detected", True),
        ("could not serialize access due to concurrent update", True),
        ("UNIQUE constraint failed: users.email", False),
    ],
)
def test_is_transaction_abort(message, expected):
    assert is_transaction_abort(Exception(message)) is expected


class TestActorContext:
    def test_role_strings_are_coerced(self):
        actor = ActorContext(user_id="u1", role="staff")
        assert actor.role is RoleName.STAFF
        assert not actor.is_client

    def test_only_admins_issue_refunds(self):
        assert PermissionName.ISSUE_REFUNDS in ROLE_CAPABILITIES[RoleName.ADMIN]
        assert PermissionName.ISSUE_REFUNDS not in ROLE_CAPABILITIES[RoleName.STAFF]
        assert PermissionName.RECORD_PAYMENTS in ROLE_CAPABILITIES[RoleName.STAFF]

    def test_require_raises_forbidden(self):
        actor = ActorContext(user_id="u1", role=RoleName.CLIENT)
        with pytest.raises(ForbiddenException) as exc:
            actor.require(PermissionName.CONFIRM_BOOKINGS)
        assert exc.value.details == {"capability": "confirm_bookings", "role": "client"}

    def test_require_for_owner(self):
        owner = ActorContext(user_id="u1", role=RoleName.CLIENT)
        stranger = ActorContext(user_id="u2", role=RoleName.CLIENT)
        staff = ActorContext(user_id="s1", role=RoleName.STAFF)
        perms = (PermissionName.CANCEL_OWN_BOOKINGS, PermissionName.CANCEL_ALL_BOOKINGS)

        owner.require_for_owner("u1", *perms)
        staff.require_for_owner("u1", *perms)
        with pytest.raises(ForbiddenException):
            stranger.require_for_owner("u1", *perms)

    def test_unknown_role(self):
        with pytest.raises(ValueError):
            ActorContext(user_id="u1", role="superuser")
