# studiobook/schemas/booking.py
"""
Booking schemas for the studio booking core.

Request models only check shape. Business rules (time range, positive
quantities, capacity) are enforced by the booking validators so that every
caller, not only HTTP handlers, gets the same domain errors.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from ..models.booking import BookingStatus
from ..models.booking_reminder import ReminderChannel, ReminderStatus
from ._strict_base import StrictRequestModel
from .base import StandardizedModel
from .payment import PaymentRecordResponse


class EquipmentLine(StrictRequestModel):
    """One requested (equipment, quantity) pair."""

    equipment_id: str = Field(..., min_length=1)
    quantity: int


class PaymentSetup(StrictRequestModel):
    amount: Decimal
    currency: Optional[str] = Field(None, min_length=3, max_length=3)


class BookingCreate(StrictRequestModel):
    """
    Create a booking for a room over [start_time, end_time).

    ``client_id`` defaults to the acting user. Timestamps must carry an offset.
    """

    studio_id: str = Field(..., min_length=1)
    room_id: str = Field(..., min_length=1)
    client_id: Optional[str] = Field(None, description="Client the booking is for")
    staff_ids: List[str] = Field(default_factory=list, description="Assigned staff, in order")
    start_time: datetime
    end_time: datetime
    purpose: Optional[str] = Field(None, max_length=1000)
    attendees: int = 1
    special_requests: Optional[str] = Field(None, max_length=2000)
    equipment: List[EquipmentLine] = Field(default_factory=list)
    payment: Optional[PaymentSetup] = None


class BookingUpdate(StrictRequestModel):
    """
    Partial update. Only fields explicitly set are applied.

    Setting ``status`` routes through the transition rules.
    """

    room_id: Optional[str] = None
    staff_ids: Optional[List[str]] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    purpose: Optional[str] = Field(None, max_length=1000)
    attendees: Optional[int] = None
    special_requests: Optional[str] = Field(None, max_length=2000)
    equipment: Optional[List[EquipmentLine]] = None
    status: Optional[BookingStatus] = None
    cancellation_reason: Optional[str] = Field(None, max_length=1000)


class BookingFilters(StrictRequestModel):
    studio_id: Optional[str] = None
    room_id: Optional[str] = None
    client_id: Optional[str] = None
    statuses: Optional[List[BookingStatus]] = None
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None
    skip: int = Field(0, ge=0)
    limit: int = Field(100, ge=1, le=500)


class BookingNoteCreate(StrictRequestModel):
    content: str = Field(..., min_length=1, max_length=5000)


class PrepMaterialCreate(StrictRequestModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    file_url: Optional[str] = None


class ReminderCreate(StrictRequestModel):
    channel: ReminderChannel
    status: ReminderStatus = ReminderStatus.SENT
    sent_at: Optional[datetime] = None


# Responses


class BookingSummary(StandardizedModel):
    """Compact view of a booking, used in conflict reports."""

    id: str
    room_id: str
    client_id: str
    start_time: datetime
    end_time: datetime
    status: BookingStatus


class AvailabilityResult(StandardizedModel):
    available: bool
    conflicts: List[BookingSummary] = Field(default_factory=list)


class EquipmentShortage(StandardizedModel):
    equipment_id: str
    requested: int
    available_count: int


class EquipmentAvailabilityResult(StandardizedModel):
    available: bool
    shortages: List[EquipmentShortage] = Field(default_factory=list)


class TimeWindow(StandardizedModel):
    start_time: datetime
    end_time: datetime


class EquipmentLineResponse(StandardizedModel):
    equipment_id: str
    quantity: int


class BookingNoteResponse(StandardizedModel):
    id: str
    author_id: str
    category: str
    content: str
    created_at: datetime


class PrepMaterialResponse(StandardizedModel):
    id: str
    title: str
    description: Optional[str] = None
    file_url: Optional[str] = None
    uploaded_by_id: str
    uploaded_at: datetime


class ReminderResponse(StandardizedModel):
    id: str
    channel: str
    status: str
    sent_at: datetime


class BookingResponse(StandardizedModel):
    id: str
    studio_id: str
    room_id: str
    client_id: str
    staff_ids: List[str] = Field(default_factory=list)
    start_time: datetime
    end_time: datetime
    status: BookingStatus
    purpose: Optional[str] = None
    attendees: int
    special_requests: Optional[str] = None
    equipment_lines: List[EquipmentLineResponse] = Field(default_factory=list)
    payment: Optional[PaymentRecordResponse] = None
    notes: List[BookingNoteResponse] = Field(default_factory=list)
    prep_materials: List[PrepMaterialResponse] = Field(default_factory=list)
    reminders: List[ReminderResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by_id: Optional[str] = None
    cancellation_reason: Optional[str] = None
