# studiobook/models/studio.py
"""
Studio catalog models.

Studios own rooms and equipment. The booking core only reads these rows
(and row-locks rooms while reserving them); catalog management lives elsewhere.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship
import ulid

from ..core.time_utils import utc_now
from ..database import Base
from .types import UTCDateTime


class Studio(Base):
    __tablename__ = "studios"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name = Column(String(200), nullable=False)
    address = Column(Text, nullable=True)
    timezone = Column(String(64), nullable=False, default="UTC")
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=utc_now)

    rooms = relationship("Room", back_populates="studio", cascade="all, delete-orphan")
    equipment = relationship("Equipment", back_populates="studio", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Studio {self.id} {self.name!r}>"


class Room(Base):
    """A bookable room. Capacity is optional; when set it bounds attendees."""

    __tablename__ = "rooms"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    studio_id = Column(
        String(26), ForeignKey("studios.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(200), nullable=False)
    capacity = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=utc_now)

    studio = relationship("Studio", back_populates="rooms")

    __table_args__ = (
        CheckConstraint("capacity IS NULL OR capacity > 0", name="ck_rooms_capacity_positive"),
        Index("ix_rooms_studio_name", "studio_id", "name", unique=True),
    )

    def __repr__(self) -> str:
        return f"<Room {self.id} studio={self.studio_id} {self.name!r}>"
