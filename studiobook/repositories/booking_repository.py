# studiobook/repositories/booking_repository.py
"""
Booking Repository for the studio booking core.

Reads for the lifecycle manager and the booking list filters
(studio, room, client, status, time window).
"""

from datetime import datetime
import logging
from typing import List, Optional, Sequence, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, selectinload

from ..core.exceptions import RepositoryException
from ..models.booking import Booking
from ..models.booking_payment import BookingPayment
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            selectinload(Booking.equipment_lines),
            selectinload(Booking.payment).selectinload(BookingPayment.transactions),
            selectinload(Booking.notes),
            selectinload(Booking.prep_materials),
            selectinload(Booking.reminders),
        )

    def get_booking_with_details(self, booking_id: str) -> Optional[Booking]:
        """
        Booking with every satellite collection freshly loaded.

        populate_existing refreshes rows already in the identity map, so notes
        or transactions added through their own repositories show up.
        """
        try:
            query = self._apply_eager_loading(
                self.db.query(Booking).filter(Booking.id == booking_id)
            ).populate_existing()
            return cast(Optional[Booking], query.first())
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve booking: {str(e)}") from e

    def list_bookings(
        self,
        *,
        studio_id: Optional[str] = None,
        room_id: Optional[str] = None,
        client_id: Optional[str] = None,
        statuses: Optional[Sequence[str]] = None,
        window_start: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Booking]:
        """
        Bookings matching every supplied filter, ordered by start time.

        The time window selects bookings that overlap it, not only those
        starting inside it.
        """
        try:
            query = self.db.query(Booking)
            if studio_id:
                query = query.filter(Booking.studio_id == studio_id)
            if room_id:
                query = query.filter(Booking.room_id == room_id)
            if client_id:
                query = query.filter(Booking.client_id == client_id)
            if statuses:
                query = query.filter(Booking.status.in_(list(statuses)))
            if window_end is not None:
                query = query.filter(Booking.start_time < window_end)
            if window_start is not None:
                query = query.filter(Booking.end_time > window_start)

            query = query.order_by(Booking.start_time, Booking.id).offset(skip).limit(limit)
            return cast(List[Booking], query.all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings: {str(e)}")
            raise RepositoryException(f"Failed to list bookings: {str(e)}") from e
