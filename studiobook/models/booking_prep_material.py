"""Preparation materials attached to a booking (scripts, references, briefs)."""

from __future__ import annotations

from sqlalchemy import Column, ForeignKey, String, Text
from sqlalchemy.orm import relationship
import ulid

from ..core.time_utils import utc_now
from ..database import Base
from .types import UTCDateTime


class BookingPrepMaterial(Base):
    __tablename__ = "booking_prep_materials"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(
        String(26),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    file_url = Column(Text, nullable=True)
    uploaded_by_id = Column(String(26), ForeignKey("users.id"), nullable=False)
    uploaded_at = Column(UTCDateTime, nullable=False, default=utc_now)

    booking = relationship("Booking", back_populates="prep_materials")
    uploaded_by = relationship("User")
