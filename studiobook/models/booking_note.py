"""Booking note model: free-form notes plus the status/payment audit trail."""

from __future__ import annotations

from enum import Enum

from sqlalchemy import CheckConstraint, Column, ForeignKey, String, Text
from sqlalchemy.orm import relationship
import ulid

from ..core.time_utils import utc_now
from ..database import Base
from .types import UTCDateTime


class NoteCategory(str, Enum):
    GENERAL = "general"
    STATUS_CHANGE = "status_change"
    PAYMENT = "payment"


class BookingNote(Base):
    __tablename__ = "booking_notes"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(
        String(26),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    author_id = Column(String(26), ForeignKey("users.id"), nullable=False)
    category = Column(String(20), nullable=False, default=NoteCategory.GENERAL.value)
    content = Column(Text, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)

    booking = relationship("Booking", back_populates="notes")
    author = relationship("User")

    __table_args__ = (
        CheckConstraint(
            "category IN ('general', 'status_change', 'payment')",
            name="ck_booking_notes_category",
        ),
    )

    def __repr__(self) -> str:
        return f"<BookingNote {self.id} booking={self.booking_id} {self.category}>"
