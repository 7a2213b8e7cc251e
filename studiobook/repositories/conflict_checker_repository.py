# studiobook/repositories/conflict_checker_repository.py
"""
ConflictChecker Repository for the studio booking core.

All overlap detection is pushed into SQL range predicates so the
(room_id, start_time, end_time, status) index does the work:

    existing.start_time < requested_end AND existing.end_time > requested_start

Only active bookings (pending, confirmed) are considered.
"""

from datetime import datetime
import logging
from typing import Dict, List, Optional, Sequence, cast

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..database.session_utils import supports_row_locks
from ..models.booking import ACTIVE_STATUS_VALUES, Booking
from ..models.booking_equipment import BookingEquipment
from ..models.equipment import Equipment
from ..models.studio import Room
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ConflictCheckerRepository(BaseRepository[Booking]):
    """
    Repository for conflict checking data access.

    Room overlap, reserved-equipment aggregates and the row locks taken by
    the write path live here.
    """

    def __init__(self, db: Session):
        """Initialize with Booking model as primary."""
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    # Booking Conflict Queries

    def get_overlapping_room_bookings(
        self,
        room_id: str,
        start_time: datetime,
        end_time: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """
        Active bookings on a room that overlap [start_time, end_time).

        Args:
            room_id: The room to check
            start_time: Requested start (UTC)
            end_time: Requested end (UTC)
            exclude_booking_id: Booking being edited, ignored by the check

        Returns:
            Conflicting bookings ordered by start time
        """
        try:
            query = self.db.query(Booking).filter(
                Booking.room_id == room_id,
                Booking.status.in_(ACTIVE_STATUS_VALUES),
                Booking.start_time < end_time,
                Booking.end_time > start_time,
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)

            return cast(List[Booking], query.order_by(Booking.start_time, Booking.id).all())

        except SQLAlchemyError as e:
            self.logger.error(f"Error getting bookings for conflict check: {str(e)}")
            raise RepositoryException(f"Failed to get conflict bookings: {str(e)}") from e

    def get_active_room_bookings_in_window(
        self, room_id: str, window_start: datetime, window_end: datetime
    ) -> List[Booking]:
        """Active bookings touching a search window, ordered by start time."""
        try:
            return cast(
                List[Booking],
                self.db.query(Booking)
                .filter(
                    Booking.room_id == room_id,
                    Booking.status.in_(ACTIVE_STATUS_VALUES),
                    Booking.start_time < window_end,
                    Booking.end_time > window_start,
                )
                .order_by(Booking.start_time)
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting bookings for window: {str(e)}")
            raise RepositoryException(f"Failed to get bookings: {str(e)}") from e

    # Equipment ledger queries

    def get_reserved_equipment_quantities(
        self,
        equipment_ids: Sequence[str],
        start_time: datetime,
        end_time: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> Dict[str, int]:
        """
        Sum quantities reserved by active bookings overlapping the window.

        Equipment with nothing reserved is absent from the result.
        """
        if not equipment_ids:
            return {}
        try:
            query = (
                self.db.query(
                    BookingEquipment.equipment_id,
                    func.coalesce(func.sum(BookingEquipment.quantity), 0),
                )
                .join(Booking, Booking.id == BookingEquipment.booking_id)
                .filter(
                    BookingEquipment.equipment_id.in_(list(equipment_ids)),
                    Booking.status.in_(ACTIVE_STATUS_VALUES),
                    Booking.start_time < end_time,
                    Booking.end_time > start_time,
                )
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)

            rows = query.group_by(BookingEquipment.equipment_id).all()
            return {equipment_id: int(total or 0) for equipment_id, total in rows}
        except SQLAlchemyError as e:
            self.logger.error(f"Error summing reserved equipment: {str(e)}")
            raise RepositoryException(f"Failed to sum reserved equipment: {str(e)}") from e

    def get_equipment(self, equipment_ids: Sequence[str], lock: bool = False) -> List[Equipment]:
        """Load equipment rows, optionally with SELECT ... FOR UPDATE in id order."""
        if not equipment_ids:
            return []
        try:
            query = (
                self.db.query(Equipment)
                .filter(Equipment.id.in_(list(equipment_ids)))
                .order_by(Equipment.id)
            )
            if lock and supports_row_locks(self.db):
                query = query.with_for_update()
            return cast(List[Equipment], query.all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading equipment: {str(e)}")
            raise RepositoryException(f"Failed to load equipment: {str(e)}") from e

    # Room queries

    def get_room(self, room_id: str, lock: bool = False) -> Optional[Room]:
        try:
            query = self.db.query(Room).filter(Room.id == room_id)
            if lock and supports_row_locks(self.db):
                query = query.with_for_update()
            return cast(Optional[Room], query.first())
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading room: {str(e)}")
            raise RepositoryException(f"Failed to load room: {str(e)}") from e
