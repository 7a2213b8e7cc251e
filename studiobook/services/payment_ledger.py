# studiobook/services/payment_ledger.py
"""
Payment Sub-ledger.

Each booking has at most one payment record holding the amount due and an
append-only list of payment/refund transactions. The record's status is a
pure function of that list:

    net = sum(payments) - sum(refunds)
    net == 0 and any refund  -> refunded
    net == 0                 -> pending
    0 < net < amount         -> partial
    net >= amount            -> paid

No gateway is involved; transactions record money that moved elsewhere.
"""

from decimal import Decimal, InvalidOperation
import logging
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ..core.booking_lock import booking_key, resource_locks
from ..core.config import settings
from ..core.enums import PermissionName
from ..core.exceptions import NotFoundException, OverRefundException, ValidationException
from ..core.time_utils import Clock
from ..models.booking import Booking, BookingStatus
from ..models.booking_note import BookingNote, NoteCategory
from ..models.booking_payment import (
    BookingPayment,
    PaymentStatus,
    PaymentTransaction,
    TransactionKind,
    net_paid,
)
from ..principal import ActorContext
from ..repositories import RepositoryFactory
from ..schemas.base import quantize_money
from ..schemas.payment import (
    PaymentRecordResponse,
    PaymentTransactionCreate,
    PaymentTransactionResponse,
)
from .base import BaseService

logger = logging.getLogger(__name__)

__all__ = ["PaymentLedger", "derive_payment_status", "net_paid", "payment_record_response"]


def derive_payment_status(amount: Decimal, transactions: Iterable[PaymentTransaction]) -> PaymentStatus:
    """Status implied by the amount due and the transaction history."""
    txns = list(transactions)
    net = net_paid(txns)
    if net <= 0:
        if any(t.kind == TransactionKind.REFUND.value for t in txns):
            return PaymentStatus.REFUNDED
        return PaymentStatus.PENDING
    if net < Decimal(amount):
        return PaymentStatus.PARTIAL
    return PaymentStatus.PAID


def payment_record_response(record: BookingPayment) -> PaymentRecordResponse:
    return PaymentRecordResponse(
        booking_id=record.booking_id,
        amount=record.amount,
        currency=record.currency,
        status=record.status,
        net_paid=record.net_paid,
        transactions=[PaymentTransactionResponse.model_validate(t) for t in record.transactions],
    )


def parse_money(value: object, field_name: str = "amount") -> Decimal:
    """Decimal with at most two places, or ValidationException."""
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationException(
            f"{field_name} must be a number",
            code="INVALID_AMOUNT",
            details={field_name: str(value)},
        ) from exc
    if not amount.is_finite() or amount != quantize_money(amount):
        raise ValidationException(
            f"{field_name} must have at most two decimal places",
            code="INVALID_AMOUNT",
            details={field_name: str(value)},
        )
    return quantize_money(amount)


class PaymentLedger(BaseService):
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db, clock=clock)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.payment_repository = RepositoryFactory.create_payment_repository(db)

    def _load_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id, load_relationships=False)
        if booking is None:
            raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
        return booking

    @BaseService.measure_operation("apply_transaction")
    def apply_transaction(
        self, actor: ActorContext, booking_id: str, data: PaymentTransactionCreate
    ) -> PaymentRecordResponse:
        """
        Append a payment or refund and recompute the payment status.

        Raises:
            ValidationException: amount <= 0, no payment record, overpayment,
                or a payment against a cancelled booking
            OverRefundException: refund larger than the net amount paid
            ForbiddenException: actor lacks the capability for this kind
        """
        kind = TransactionKind(data.kind)
        actor.require(
            PermissionName.ISSUE_REFUNDS
            if kind == TransactionKind.REFUND
            else PermissionName.RECORD_PAYMENTS
        )
        amount = parse_money(data.amount)
        if amount <= 0:
            raise ValidationException(
                "Transaction amount must be greater than zero",
                code="NON_POSITIVE_AMOUNT",
                details={"amount": str(amount)},
            )

        with resource_locks([booking_key(booking_id)]):
            with self.transaction():
                booking = self._load_booking(booking_id)
                record = self.payment_repository.get_by_booking_id(booking_id, lock=True)
                if record is None:
                    raise ValidationException(
                        "Booking has no payment record",
                        code="NO_PAYMENT_RECORD",
                        details={"booking_id": booking_id},
                    )
                if kind == TransactionKind.PAYMENT and booking.status == BookingStatus.CANCELLED.value:
                    raise ValidationException(
                        "Cancelled bookings only accept refunds",
                        code="BOOKING_CANCELLED",
                        details={"booking_id": booking_id},
                    )

                current = record.net_paid
                if kind == TransactionKind.REFUND and amount > current:
                    raise OverRefundException(amount, current)
                if kind == TransactionKind.PAYMENT and current + amount > Decimal(record.amount):
                    raise ValidationException(
                        "Payment exceeds the amount due",
                        code="OVERPAYMENT",
                        details={
                            "amount": str(amount),
                            "outstanding": str(Decimal(record.amount) - current),
                        },
                    )

                txn = PaymentTransaction(
                    kind=kind.value,
                    amount=amount,
                    method=data.method,
                    notes=data.notes,
                    recorded_by_id=actor.user_id,
                    occurred_at=self.now(),
                )
                record.transactions.append(txn)
                previous_status = record.status
                record.status = derive_payment_status(record.amount, record.transactions).value

                self.db.add(
                    BookingNote(
                        booking_id=booking_id,
                        author_id=actor.user_id,
                        category=NoteCategory.PAYMENT.value,
                        content=(
                            f"{kind.value} of {amount} {record.currency}"
                            f"{' via ' + data.method if data.method else ''}; "
                            f"status {previous_status} -> {record.status}"
                        ),
                        created_at=self.now(),
                    )
                )
                self.db.flush()
                response = payment_record_response(record)

        self.log_operation(
            "apply_transaction",
            booking_id=booking_id,
            kind=kind.value,
            amount=str(amount),
            payment_status=response.status,
        )
        return response

    @BaseService.measure_operation("set_payment_amount")
    def set_payment_amount(
        self,
        actor: ActorContext,
        booking_id: str,
        amount: Decimal,
        currency: Optional[str] = None,
    ) -> PaymentRecordResponse:
        """
        Create the payment record, or re-price it.

        The new amount can never be below what has already been paid.
        """
        actor.require(PermissionName.MANAGE_PAYMENT_AMOUNTS)
        with resource_locks([booking_key(booking_id)]):
            with self.transaction():
                booking = self._load_booking(booking_id)
                record = self.payment_repository.get_by_booking_id(booking_id, lock=True)
                record = self.attach_payment_record(booking, amount, currency, record)
                self.db.flush()
                response = payment_record_response(record)

        self.log_operation("set_payment_amount", booking_id=booking_id, amount=str(response.amount))
        return response

    def attach_payment_record(
        self,
        booking: Booking,
        amount: object,
        currency: Optional[str] = None,
        record: Optional[BookingPayment] = None,
    ) -> BookingPayment:
        """
        Set the amount due on a booking inside the caller's transaction.

        Used by create_booking as well as set_payment_amount.
        """
        value = parse_money(amount)
        if value < 0:
            raise ValidationException(
                "Payment amount cannot be negative",
                code="NEGATIVE_AMOUNT",
                details={"amount": str(value)},
            )
        code = (currency or (record.currency if record else None) or settings.default_currency)
        code = code.upper()

        if record is None:
            record = BookingPayment(amount=value, currency=code, status=PaymentStatus.PENDING.value)
            booking.payment = record
            return record

        paid = record.net_paid
        if value < paid:
            raise ValidationException(
                "Amount due cannot be lower than the amount already paid",
                code="AMOUNT_BELOW_PAID",
                details={"amount": str(value), "net_paid": str(paid)},
            )
        if record.transactions and code != record.currency:
            raise ValidationException(
                "Currency cannot change once transactions exist",
                code="CURRENCY_LOCKED",
                details={"currency": record.currency},
            )
        record.amount = value
        record.currency = code
        record.status = derive_payment_status(value, record.transactions).value
        return record

    @BaseService.measure_operation("get_payment_record")
    def get_payment_record(self, actor: ActorContext, booking_id: str) -> PaymentRecordResponse:
        booking = self._load_booking(booking_id)
        actor.require_for_owner(
            booking.client_id,
            PermissionName.VIEW_OWN_BOOKINGS,
            PermissionName.VIEW_ALL_BOOKINGS,
        )
        record = self.payment_repository.get_by_booking_id(booking_id)
        if record is None:
            raise NotFoundException(
                f"Booking {booking_id} has no payment record", code="PAYMENT_RECORD_NOT_FOUND"
            )
        return payment_record_response(record)
