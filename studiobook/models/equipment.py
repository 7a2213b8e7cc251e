# studiobook/models/equipment.py
"""
Equipment stock owned by a studio.

``total_quantity`` is the only stored count. What is reserved for a given
window is always derived from active bookings, never kept as a counter.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
import ulid

from ..core.time_utils import utc_now
from ..database import Base
from .types import UTCDateTime


class Equipment(Base):
    __tablename__ = "equipment"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    studio_id = Column(
        String(26), ForeignKey("studios.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(200), nullable=False)
    category = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    total_quantity = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=utc_now)

    studio = relationship("Studio", back_populates="equipment")

    __table_args__ = (
        CheckConstraint("total_quantity >= 0", name="ck_equipment_total_quantity_nonnegative"),
    )

    def __repr__(self) -> str:
        return f"<Equipment {self.id} {self.name!r} total={self.total_quantity}>"
