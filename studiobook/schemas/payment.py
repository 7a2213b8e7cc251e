# studiobook/schemas/payment.py
"""Payment sub-ledger schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from ..models.booking_payment import PaymentStatus, TransactionKind
from ._strict_base import StrictRequestModel
from .base import MoneyStr, StandardizedModel


class PaymentTransactionCreate(StrictRequestModel):
    """A payment or refund to apply to a booking's payment record."""

    kind: TransactionKind
    amount: Decimal
    method: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = Field(None, max_length=1000)


class PaymentTransactionResponse(StandardizedModel):
    id: str
    transaction_ref: str
    kind: TransactionKind
    amount: MoneyStr
    method: Optional[str] = None
    notes: Optional[str] = None
    occurred_at: datetime


class PaymentRecordResponse(StandardizedModel):
    booking_id: str
    amount: MoneyStr
    currency: str
    status: PaymentStatus
    net_paid: MoneyStr = Decimal("0")
    transactions: List[PaymentTransactionResponse] = Field(default_factory=list)
