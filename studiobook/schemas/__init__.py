from .booking import (
    AvailabilityResult,
    BookingCreate,
    BookingFilters,
    BookingNoteCreate,
    BookingResponse,
    BookingSummary,
    BookingUpdate,
    EquipmentAvailabilityResult,
    EquipmentLine,
    EquipmentShortage,
    PaymentSetup,
    PrepMaterialCreate,
    ReminderCreate,
    TimeWindow,
)
from .payment import PaymentRecordResponse, PaymentTransactionCreate, PaymentTransactionResponse
from .user import UserCreate, UserResponse

__all__ = [
    "AvailabilityResult",
    "BookingCreate",
    "BookingFilters",
    "BookingNoteCreate",
    "BookingResponse",
    "BookingSummary",
    "BookingUpdate",
    "EquipmentAvailabilityResult",
    "EquipmentLine",
    "EquipmentShortage",
    "PaymentRecordResponse",
    "PaymentSetup",
    "PaymentTransactionCreate",
    "PaymentTransactionResponse",
    "PrepMaterialCreate",
    "ReminderCreate",
    "TimeWindow",
    "UserCreate",
    "UserResponse",
]
