"""Repository for booking notes and the status/payment audit trail."""

from __future__ import annotations

from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking_note import BookingNote
from .base_repository import BaseRepository


class BookingNoteRepository(BaseRepository[BookingNote]):
    def __init__(self, db: Session):
        super().__init__(db, BookingNote)

    def list_for_booking(self, booking_id: str, category: Optional[str] = None) -> List[BookingNote]:
        try:
            query = self.db.query(BookingNote).filter(BookingNote.booking_id == booking_id)
            if category:
                query = query.filter(BookingNote.category == category)
            return cast(List[BookingNote], query.order_by(BookingNote.created_at).all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing notes for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to list booking notes: {str(e)}") from e
