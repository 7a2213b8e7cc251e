# studiobook/repositories/payment_repository.py
import logging
from typing import Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..core.exceptions import RepositoryException
from ..database.session_utils import supports_row_locks
from ..models.booking_payment import BookingPayment
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class PaymentRepository(BaseRepository[BookingPayment]):
    def __init__(self, db: Session):
        super().__init__(db, BookingPayment)

    def get_by_booking_id(self, booking_id: str, lock: bool = False) -> Optional[BookingPayment]:
        """Payment record for a booking with its transactions loaded."""
        try:
            query = (
                self.db.query(BookingPayment)
                .options(selectinload(BookingPayment.transactions))
                .filter(BookingPayment.booking_id == booking_id)
            )
            if lock and supports_row_locks(self.db):
                query = query.with_for_update()
            return cast(Optional[BookingPayment], query.first())
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting payment for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to get payment record: {str(e)}") from e
