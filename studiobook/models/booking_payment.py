"""Booking payment satellite tables."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Iterable

from sqlalchemy import CheckConstraint, Column, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import relationship
import ulid

from ..core.time_utils import utc_now
from ..database import Base
from .types import UTCDateTime


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    REFUNDED = "refunded"


class TransactionKind(str, Enum):
    PAYMENT = "payment"
    REFUND = "refund"


def net_paid(transactions: Iterable["PaymentTransaction"]) -> Decimal:
    """Payments minus refunds."""
    total = Decimal("0")
    for txn in transactions:
        amount = Decimal(txn.amount)
        total += amount if txn.kind == TransactionKind.PAYMENT.value else -amount
    return total


class BookingPayment(Base):
    """
    Amount due for a single booking and its transaction history.

    ``status`` is a cached projection of the transactions; the ledger
    recomputes it on every write and never sets it directly.
    """

    __tablename__ = "booking_payments"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(
        String(26),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)

    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=utc_now)

    booking = relationship("Booking", back_populates="payment")
    transactions = relationship(
        "PaymentTransaction",
        back_populates="payment",
        cascade="all, delete-orphan",
        order_by="[PaymentTransaction.occurred_at, PaymentTransaction.id]",
    )

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_booking_payments_amount_nonnegative"),
        CheckConstraint(
            "status IN ('pending', 'partial', 'paid', 'refunded')",
            name="ck_booking_payments_status",
        ),
    )

    @property
    def net_paid(self) -> Decimal:
        return net_paid(self.transactions)

    def __repr__(self) -> str:
        return f"<BookingPayment booking={self.booking_id} {self.amount} {self.currency} status={self.status}>"


class PaymentTransaction(Base):
    """A single payment or refund against a booking payment record."""

    __tablename__ = "payment_transactions"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    payment_id = Column(
        String(26),
        ForeignKey("booking_payments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    transaction_ref = Column(
        String(64), nullable=False, unique=True, default=lambda: str(ulid.ULID())
    )
    kind = Column(String(10), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    method = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    recorded_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    occurred_at = Column(UTCDateTime, nullable=False, default=utc_now)

    payment = relationship("BookingPayment", back_populates="transactions")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_transactions_amount_positive"),
        CheckConstraint("kind IN ('payment', 'refund')", name="ck_payment_transactions_kind"),
    )

    def __repr__(self) -> str:
        return f"<PaymentTransaction {self.transaction_ref} {self.kind} {self.amount}>"
