from __future__ import annotations

from decimal import Decimal

import pytest

from studiobook.core.exceptions import (
    ForbiddenException,
    NotFoundException,
    OverRefundException,
    ValidationException,
)
from studiobook.models import NoteCategory
from studiobook.models.booking_payment import TransactionKind
from studiobook.schemas.payment import PaymentTransactionCreate


def payment(amount: str, method: str = "card") -> PaymentTransactionCreate:
    return PaymentTransactionCreate(kind=TransactionKind.PAYMENT, amount=Decimal(amount), method=method)


def refund(amount: str) -> PaymentTransactionCreate:
    return PaymentTransactionCreate(kind=TransactionKind.REFUND, amount=Decimal(amount))


@pytest.fixture
def priced_booking(book, when):
    return book(when(10), when(11), payment={"amount": Decimal("100.00"), "currency": "usd"})


def test_status_moves_pending_partial_paid(payment_ledger, staff, priced_booking):
    record = payment_ledger.get_payment_record(staff, priced_booking.id)
    assert record.status == "pending"
    assert record.currency == "USD"

    record = payment_ledger.apply_transaction(staff, priced_booking.id, payment("40.00"))
    assert record.status == "partial"
    assert record.net_paid == Decimal("40.00")

    record = payment_ledger.apply_transaction(staff, priced_booking.id, payment("60.00"))
    assert record.status == "paid"
    assert [t.kind for t in record.transactions] == ["payment", "payment"]
    assert len({t.transaction_ref for t in record.transactions}) == 2


def test_over_refund_is_rejected(payment_ledger, staff, admin, priced_booking):
    payment_ledger.apply_transaction(staff, priced_booking.id, payment("30.00"))

    with pytest.raises(OverRefundException) as exc:
        payment_ledger.apply_transaction(admin, priced_booking.id, refund("30.01"))
    assert exc.value.details == {"requested": "30.01", "refundable": "30.00"}

    record = payment_ledger.get_payment_record(admin, priced_booking.id)
    assert record.net_paid == Decimal("30.00")
    assert len(record.transactions) == 1


def test_full_refund_marks_record_refunded(payment_ledger, staff, admin, priced_booking):
    payment_ledger.apply_transaction(staff, priced_booking.id, payment("100.00"))
    partial = payment_ledger.apply_transaction(admin, priced_booking.id, refund("25.00"))
    assert partial.status == "partial"

    record = payment_ledger.apply_transaction(admin, priced_booking.id, refund("75.00"))
    assert record.status == "refunded"
    assert record.net_paid == Decimal("0")


def test_overpayment_is_rejected(payment_ledger, staff, priced_booking):
    payment_ledger.apply_transaction(staff, priced_booking.id, payment("90.00"))
    with pytest.raises(ValidationException) as exc:
        payment_ledger.apply_transaction(staff, priced_booking.id, payment("10.01"))
    assert exc.value.code == "OVERPAYMENT"


@pytest.mark.parametrize("amount", ["0", "-5.00"])
def test_amount_must_be_positive(payment_ledger, staff, priced_booking, amount):
    with pytest.raises(ValidationException):
        payment_ledger.apply_transaction(staff, priced_booking.id, payment(amount))


def test_sub_cent_amounts_are_rejected(payment_ledger, staff, priced_booking):
    with pytest.raises(ValidationException) as exc:
        payment_ledger.apply_transaction(staff, priced_booking.id, payment("10.005"))
    assert exc.value.code == "INVALID_AMOUNT"


def test_capabilities(payment_ledger, client, staff, priced_booking):
    with pytest.raises(ForbiddenException):
        payment_ledger.apply_transaction(client, priced_booking.id, payment("10.00"))

    payment_ledger.apply_transaction(staff, priced_booking.id, payment("10.00"))
    with pytest.raises(ForbiddenException):
        payment_ledger.apply_transaction(staff, priced_booking.id, refund("10.00"))


def test_clients_read_only_their_own_record(payment_ledger, client, other, priced_booking):
    assert payment_ledger.get_payment_record(client, priced_booking.id).booking_id == priced_booking.id
    with pytest.raises(ForbiddenException):
        payment_ledger.get_payment_record(other, priced_booking.id)


def test_booking_without_record(payment_ledger, staff, book, when):
    booking = book(when(10), when(11))
    with pytest.raises(NotFoundException):
        payment_ledger.get_payment_record(staff, booking.id)
    with pytest.raises(ValidationException) as exc:
        payment_ledger.apply_transaction(staff, booking.id, payment("10.00"))
    assert exc.value.code == "NO_PAYMENT_RECORD"

    created = payment_ledger.set_payment_amount(staff, booking.id, Decimal("80"))
    assert created.amount == Decimal("80.00")
    assert created.status == "pending"


def test_cancelled_bookings_accept_refunds_only(
    payment_ledger, booking_service, staff, admin, priced_booking
):
    payment_ledger.apply_transaction(staff, priced_booking.id, payment("50.00"))
    booking_service.cancel_booking(staff, priced_booking.id)

    with pytest.raises(ValidationException) as exc:
        payment_ledger.apply_transaction(staff, priced_booking.id, payment("10.00"))
    assert exc.value.code == "BOOKING_CANCELLED"

    record = payment_ledger.apply_transaction(admin, priced_booking.id, refund("50.00"))
    assert record.status == "refunded"


def test_repricing(payment_ledger, staff, priced_booking):
    payment_ledger.apply_transaction(staff, priced_booking.id, payment("60.00"))

    with pytest.raises(ValidationException) as exc:
        payment_ledger.set_payment_amount(staff, priced_booking.id, Decimal("50.00"))
    assert exc.value.code == "AMOUNT_BELOW_PAID"

    with pytest.raises(ValidationException) as locked:
        payment_ledger.set_payment_amount(staff, priced_booking.id, Decimal("120.00"), "EUR")
    assert locked.value.code == "CURRENCY_LOCKED"

    record = payment_ledger.set_payment_amount(staff, priced_booking.id, Decimal("60.00"))
    assert record.status == "paid"


def test_transactions_leave_payment_notes(payment_ledger, booking_service, staff, priced_booking):
    payment_ledger.apply_transaction(staff, priced_booking.id, payment("40.00", method="cash"))
    notes = booking_service.list_notes(staff, priced_booking.id, NoteCategory.PAYMENT)
    assert len(notes) == 1
    assert "via cash" in notes[0].content
    assert "pending -> partial" in notes[0].content


def test_booking_response_includes_payment(booking_service, payment_ledger, staff, priced_booking):
    payment_ledger.apply_transaction(staff, priced_booking.id, payment("40.00"))
    details = booking_service.get_booking(staff, priced_booking.id)
    assert details.payment.status == "partial"
    assert details.payment.net_paid == Decimal("40.00")
    assert details.model_dump(mode="json")["payment"]["amount"] == "100.00"


def test_same_instant_transactions_load_in_a_stable_order(payment_ledger, staff, db, priced_booking):
    for amount in ("10.00", "20.00", "30.00"):
        payment_ledger.apply_transaction(staff, priced_booking.id, payment(amount))
    db.expire_all()

    record = payment_ledger.get_payment_record(staff, priced_booking.id)
    assert len({t.occurred_at for t in record.transactions}) == 1
    ids = [t.id for t in record.transactions]
    assert ids == sorted(ids)
