# studiobook/models/booking.py
"""
Booking model for the studio booking platform.

A booking reserves one room (and optionally equipment) for a half-open
interval [start_time, end_time). Only active bookings (pending, confirmed)
hold the room; cancelled and completed bookings are history.

Status moves forward only:
    pending -> confirmed -> completed
    pending | confirmed -> cancelled
"""

from datetime import datetime
from enum import Enum
import logging
from typing import FrozenSet, List

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship
import ulid

from ..core.time_utils import utc_now
from ..database import Base
from .types import StringArrayType, UTCDateTime

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"  # Initial state, holds the room
    CONFIRMED = "confirmed"  # Approved by staff, holds the room
    CANCELLED = "cancelled"  # Terminal, releases the room
    COMPLETED = "completed"  # Terminal, session took place


ACTIVE_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED}
)
TERMINAL_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {BookingStatus.CANCELLED, BookingStatus.COMPLETED}
)
ACTIVE_STATUS_VALUES: List[str] = sorted(s.value for s in ACTIVE_STATUSES)


class Booking(Base):
    """
    Reservation of a room by a client.

    Equipment lines, payment, notes, prep materials and reminder records are
    satellite tables owned by the booking and deleted with it.
    """

    __tablename__ = "bookings"

    # Primary key
    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    # Core relationships
    studio_id = Column(String(26), ForeignKey("studios.id"), nullable=False)
    room_id = Column(String(26), ForeignKey("rooms.id"), nullable=False)
    client_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    staff_ids = Column(StringArrayType, nullable=False, default=list)

    # Interval [start_time, end_time)
    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False)

    # Booking details
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    purpose = Column(Text, nullable=True)
    attendees = Column(Integer, nullable=False, default=1)
    special_requests = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=utc_now)
    confirmed_at = Column(UTCDateTime, nullable=True)
    completed_at = Column(UTCDateTime, nullable=True)
    cancelled_at = Column(UTCDateTime, nullable=True)

    # Cancellation tracking
    cancelled_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    # Relationships
    studio = relationship("Studio")
    room = relationship("Room")
    client = relationship("User", foreign_keys=[client_id])
    cancelled_by = relationship("User", foreign_keys=[cancelled_by_id])
    equipment_lines = relationship(
        "BookingEquipment",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingEquipment.equipment_id",
    )
    payment = relationship(
        "BookingPayment", back_populates="booking", uselist=False, cascade="all, delete-orphan"
    )
    notes = relationship(
        "BookingNote",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingNote.created_at",
    )
    prep_materials = relationship(
        "BookingPrepMaterial",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingPrepMaterial.uploaded_at",
    )
    reminders = relationship(
        "BookingReminder",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingReminder.sent_at",
    )

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_bookings_time_order"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="ck_bookings_status",
        ),
        CheckConstraint("attendees > 0", name="ck_bookings_attendees_positive"),
        # Range lookup used by the availability check.
        Index("ix_bookings_room_window_status", "room_id", "start_time", "end_time", "status"),
        Index("ix_bookings_studio_window_status", "studio_id", "start_time", "end_time", "status"),
    )

    @property
    def status_enum(self) -> BookingStatus:
        return BookingStatus(self.status)

    @property
    def is_active(self) -> bool:
        return self.status_enum in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status_enum in TERMINAL_STATUSES

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Half-open interval overlap."""
        return self.start_time < end and start < self.end_time

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id} room={self.room_id} "
            f"{self.start_time.isoformat() if self.start_time else None}"
            f"-{self.end_time.isoformat() if self.end_time else None} {self.status}>"
        )
