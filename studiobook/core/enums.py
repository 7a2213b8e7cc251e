# studiobook/core/enums.py
"""
Core enums for the studio booking platform.

Roles are fixed (admin, staff, client). Each role maps to a set of
capabilities; services check capabilities, never role names.
"""

from enum import Enum
from typing import Dict, FrozenSet


class RoleName(str, Enum):
    """Roles a user can hold."""

    ADMIN = "admin"
    STAFF = "staff"
    CLIENT = "client"


class PermissionName(str, Enum):
    """
    Capabilities checked by the booking services.

    The ``*_OWN_*`` variants only apply to bookings where the actor is the client.
    """

    # Bookings
    CREATE_OWN_BOOKINGS = "create_own_bookings"
    CREATE_BOOKINGS_FOR_CLIENTS = "create_bookings_for_clients"
    UPDATE_OWN_BOOKINGS = "update_own_bookings"
    UPDATE_ALL_BOOKINGS = "update_all_bookings"
    CONFIRM_BOOKINGS = "confirm_bookings"
    COMPLETE_BOOKINGS = "complete_bookings"
    CANCEL_OWN_BOOKINGS = "cancel_own_bookings"
    CANCEL_ALL_BOOKINGS = "cancel_all_bookings"
    VIEW_OWN_BOOKINGS = "view_own_bookings"
    VIEW_ALL_BOOKINGS = "view_all_bookings"

    # Booking sub-records
    ANNOTATE_OWN_BOOKINGS = "annotate_own_bookings"
    ANNOTATE_ALL_BOOKINGS = "annotate_all_bookings"
    RECORD_REMINDERS = "record_reminders"

    # Payments
    RECORD_PAYMENTS = "record_payments"
    ISSUE_REFUNDS = "issue_refunds"
    MANAGE_PAYMENT_AMOUNTS = "manage_payment_amounts"


_CLIENT_CAPABILITIES: FrozenSet[PermissionName] = frozenset(
    {
        PermissionName.CREATE_OWN_BOOKINGS,
        PermissionName.UPDATE_OWN_BOOKINGS,
        PermissionName.CANCEL_OWN_BOOKINGS,
        PermissionName.VIEW_OWN_BOOKINGS,
        PermissionName.ANNOTATE_OWN_BOOKINGS,
    }
)

_STAFF_CAPABILITIES: FrozenSet[PermissionName] = _CLIENT_CAPABILITIES | frozenset(
    {
        PermissionName.CREATE_BOOKINGS_FOR_CLIENTS,
        PermissionName.UPDATE_ALL_BOOKINGS,
        PermissionName.CONFIRM_BOOKINGS,
        PermissionName.COMPLETE_BOOKINGS,
        PermissionName.CANCEL_ALL_BOOKINGS,
        PermissionName.VIEW_ALL_BOOKINGS,
        PermissionName.ANNOTATE_ALL_BOOKINGS,
        PermissionName.RECORD_REMINDERS,
        PermissionName.RECORD_PAYMENTS,
        PermissionName.MANAGE_PAYMENT_AMOUNTS,
    }
)

ROLE_CAPABILITIES: Dict[RoleName, FrozenSet[PermissionName]] = {
    RoleName.CLIENT: _CLIENT_CAPABILITIES,
    RoleName.STAFF: _STAFF_CAPABILITIES,
    RoleName.ADMIN: frozenset(PermissionName),
}
