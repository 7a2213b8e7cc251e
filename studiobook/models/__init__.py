# studiobook/models/__init__.py
"""
Database models for the studio booking core.

Importing this package registers every table on ``Base.metadata``.
"""

from .booking import ACTIVE_STATUSES, TERMINAL_STATUSES, Booking, BookingStatus
from .booking_equipment import BookingEquipment
from .booking_note import BookingNote, NoteCategory
from .booking_payment import BookingPayment, PaymentStatus, PaymentTransaction, TransactionKind
from .booking_prep_material import BookingPrepMaterial
from .booking_reminder import BookingReminder, ReminderChannel, ReminderStatus
from .equipment import Equipment
from .studio import Room, Studio
from .user import User

__all__ = [
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "Booking",
    "BookingEquipment",
    "BookingNote",
    "BookingPayment",
    "BookingPrepMaterial",
    "BookingReminder",
    "BookingStatus",
    "Equipment",
    "NoteCategory",
    "PaymentStatus",
    "PaymentTransaction",
    "ReminderChannel",
    "ReminderStatus",
    "Room",
    "Studio",
    "TransactionKind",
    "User",
]
