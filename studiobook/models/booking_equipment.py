"""Equipment reserved by a booking."""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
import ulid

from ..database import Base


class BookingEquipment(Base):
    """One (equipment, quantity) line on a booking."""

    __tablename__ = "booking_equipment"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(
        String(26),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    equipment_id = Column(String(26), ForeignKey("equipment.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)

    booking = relationship("Booking", back_populates="equipment_lines")
    equipment = relationship("Equipment")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_booking_equipment_quantity_positive"),
        UniqueConstraint("booking_id", "equipment_id", name="uq_booking_equipment_line"),
    )

    def __repr__(self) -> str:
        return f"<BookingEquipment booking={self.booking_id} equipment={self.equipment_id} x{self.quantity}>"
