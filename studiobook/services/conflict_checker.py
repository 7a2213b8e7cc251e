# studiobook/services/conflict_checker.py
"""
Conflict Checker Service for the studio booking core.

Handles room availability for a requested interval:
- Checking whether [start, end) overlaps active bookings on a room
- Suggesting the next free window of a given length

Intervals are half-open: [a, b) and [c, d) overlap iff a < d and c < b,
so back-to-back bookings never conflict. Only pending and confirmed
bookings hold a room.

This is a read-only pre-check. The authoritative check runs again inside
the booking write path while the room lock is held.
"""

from datetime import datetime, timedelta
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import ValidationException
from ..core.time_utils import Clock
from ..repositories import RepositoryFactory
from ..repositories.conflict_checker_repository import ConflictCheckerRepository
from ..schemas.booking import AvailabilityResult, BookingSummary, TimeWindow
from .base import BaseService
from .booking_validation import validate_room, validate_time_range

logger = logging.getLogger(__name__)


class ConflictChecker(BaseService):
    """
    Service for checking room conflicts.

    Centralizes overlap detection so the pre-check and the write path use
    the same query.
    """

    def __init__(
        self,
        db: Session,
        repository: Optional[ConflictCheckerRepository] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize conflict checker service.

        Args:
            db: Database session
            repository: Optional ConflictCheckerRepository instance
            clock: Optional UTC clock
        """
        super().__init__(db, clock=clock)
        self.logger = logging.getLogger(__name__)
        self.repository = repository or RepositoryFactory.create_conflict_checker_repository(db)

    @BaseService.measure_operation("check_availability")
    def check_availability(
        self,
        room_id: str,
        start_time: datetime,
        end_time: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> AvailabilityResult:
        """
        Check a room for conflicting active bookings.

        Args:
            room_id: Room to check
            start_time: Requested start (timezone-aware)
            end_time: Requested end (timezone-aware)
            exclude_booking_id: Booking being edited, ignored by the check

        Returns:
            AvailabilityResult with every conflict ordered by start time

        Raises:
            InvalidRangeException: start_time >= end_time
            NotFoundException: unknown room
        """
        start, end = validate_time_range(start_time, end_time)
        validate_room(self.repository.get_room(room_id), room_id)

        conflicts = self.find_conflicts(room_id, start, end, exclude_booking_id)
        return AvailabilityResult(available=not conflicts, conflicts=conflicts)

    def find_conflicts(
        self,
        room_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> List[BookingSummary]:
        """
        Conflicts for an already-validated UTC range.

        Called by the booking write path after the room lock is taken.
        """
        bookings = self.repository.get_overlapping_room_bookings(
            room_id, start, end, exclude_booking_id
        )
        conflicts = [BookingSummary.model_validate(b) for b in bookings]

        if conflicts:
            self.logger.warning(
                f"Found {len(conflicts)} booking conflicts for room {room_id} "
                f"between {start.isoformat()}-{end.isoformat()}",
                extra={
                    "room_id": room_id,
                    "conflict_ids": [c.id for c in conflicts],
                },
            )

        return conflicts

    @BaseService.measure_operation("find_next_available_window")
    def find_next_available_window(
        self,
        room_id: str,
        duration: timedelta,
        search_start: datetime,
        search_end: datetime,
    ) -> Optional[TimeWindow]:
        """
        Earliest free window of ``duration`` on a room inside the search range.

        Returns:
            TimeWindow, or None if the range has no gap long enough
        """
        if duration <= timedelta(0):
            raise ValidationException(
                "Duration must be positive",
                code="INVALID_DURATION",
                details={"duration_seconds": duration.total_seconds()},
            )
        window_start, window_end = validate_time_range(search_start, search_end)
        validate_room(self.repository.get_room(room_id), room_id)

        candidate = window_start
        for booking in self.repository.get_active_room_bookings_in_window(
            room_id, window_start, window_end
        ):
            if candidate + duration <= booking.start_time:
                break
            candidate = max(candidate, booking.end_time)

        if candidate + duration > window_end:
            return None
        return TimeWindow(start_time=candidate, end_time=candidate + duration)
