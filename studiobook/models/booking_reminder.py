"""Record of reminders sent for a booking. Delivery itself happens elsewhere."""

from __future__ import annotations

from enum import Enum

from sqlalchemy import CheckConstraint, Column, ForeignKey, String
from sqlalchemy.orm import relationship
import ulid

from ..core.time_utils import utc_now
from ..database import Base
from .types import UTCDateTime


class ReminderChannel(str, Enum):
    EMAIL = "email"
    SMS = "sms"


class ReminderStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"


class BookingReminder(Base):
    __tablename__ = "booking_reminders"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(
        String(26),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    channel = Column(String(10), nullable=False)
    status = Column(String(10), nullable=False, default=ReminderStatus.SENT.value)
    sent_at = Column(UTCDateTime, nullable=False, default=utc_now)

    booking = relationship("Booking", back_populates="reminders")

    __table_args__ = (
        CheckConstraint("channel IN ('email', 'sms')", name="ck_booking_reminders_channel"),
        CheckConstraint("status IN ('sent', 'failed')", name="ck_booking_reminders_status"),
    )
