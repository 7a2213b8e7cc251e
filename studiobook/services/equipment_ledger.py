# studiobook/services/equipment_ledger.py
"""
Equipment Reservation Ledger.

Reserved quantity for an item in a window is never stored; it is the sum of
quantities on active bookings overlapping that window:

    available = max(total_quantity - reserved, 0)

Cancelling or completing a booking therefore releases its equipment without
any bookkeeping.
"""

from datetime import datetime
import logging
from typing import Iterable, List, Mapping, Optional

from sqlalchemy.orm import Session

from ..core.time_utils import Clock
from ..models.equipment import Equipment
from ..repositories import RepositoryFactory
from ..repositories.conflict_checker_repository import ConflictCheckerRepository
from ..schemas.booking import EquipmentAvailabilityResult, EquipmentLine, EquipmentShortage
from .base import BaseService
from .booking_validation import (
    normalize_equipment_lines,
    validate_equipment_rows,
    validate_time_range,
)

logger = logging.getLogger(__name__)


class EquipmentLedger(BaseService):
    def __init__(
        self,
        db: Session,
        repository: Optional[ConflictCheckerRepository] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(db, clock=clock)
        self.repository = repository or RepositoryFactory.create_conflict_checker_repository(db)

    @BaseService.measure_operation("check_equipment_availability")
    def check_equipment_availability(
        self,
        items: Iterable[EquipmentLine],
        start_time: datetime,
        end_time: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> EquipmentAvailabilityResult:
        """
        Check requested equipment against stock for a window.

        Every shortage is reported, not only the first.

        Raises:
            ValidationException: non-positive quantity or naive timestamps
            InvalidRangeException: start_time >= end_time
            NotFoundException: unknown or inactive equipment
        """
        requested = normalize_equipment_lines(items)
        start, end = validate_time_range(start_time, end_time)
        if not requested:
            return EquipmentAvailabilityResult(available=True, shortages=[])

        rows = self.repository.get_equipment(list(requested))
        stock = validate_equipment_rows(requested, rows)
        return self.evaluate(requested, stock, start, end, exclude_booking_id)

    def evaluate(
        self,
        requested: Mapping[str, int],
        stock: Mapping[str, Equipment],
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> EquipmentAvailabilityResult:
        """
        Compare normalized requests with stock for a validated UTC window.

        The booking write path calls this directly after it has locked the
        equipment rows.
        """
        reserved = self.repository.get_reserved_equipment_quantities(
            list(requested), start, end, exclude_booking_id
        )
        shortages = compute_shortages(requested, stock, reserved)

        if shortages:
            self.logger.warning(
                f"Equipment shortage for {len(shortages)} item(s) "
                f"between {start.isoformat()}-{end.isoformat()}",
                extra={"shortages": [s.model_dump() for s in shortages]},
            )
        return EquipmentAvailabilityResult(available=not shortages, shortages=shortages)


def compute_shortages(
    requested: Mapping[str, int],
    stock: Mapping[str, Equipment],
    reserved: Mapping[str, int],
) -> List[EquipmentShortage]:
    """Pure comparison of requested vs. free quantity, in equipment id order."""
    shortages: List[EquipmentShortage] = []
    for equipment_id in sorted(requested):
        total = int(stock[equipment_id].total_quantity or 0)
        available_count = max(total - reserved.get(equipment_id, 0), 0)
        if requested[equipment_id] > available_count:
            shortages.append(
                EquipmentShortage(
                    equipment_id=equipment_id,
                    requested=requested[equipment_id],
                    available_count=available_count,
                )
            )
    return shortages
