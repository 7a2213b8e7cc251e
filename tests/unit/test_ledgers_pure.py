from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace

import pytest

from studiobook.core.exceptions import ValidationException
from studiobook.models.booking_payment import PaymentStatus, net_paid
from studiobook.services.equipment_ledger import compute_shortages
from studiobook.services.payment_ledger import derive_payment_status, parse_money


def _txn(kind: str, amount: str):
    return SimpleNamespace(kind=kind, amount=Decimal(amount))


class TestDerivePaymentStatus:
    def test_no_transactions_is_pending(self):
        assert derive_payment_status(Decimal("100"), []) == PaymentStatus.PENDING

    def test_partial_then_paid(self):
        txns = [_txn("payment", "40.00")]
        assert derive_payment_status(Decimal("100"), txns) == PaymentStatus.PARTIAL
        txns.append(_txn("payment", "60.00"))
        assert derive_payment_status(Decimal("100"), txns) == PaymentStatus.PAID

    def test_refund_back_to_zero_is_refunded(self):
        txns = [_txn("payment", "100.00"), _txn("refund", "100.00")]
        assert derive_payment_status(Decimal("100"), txns) == PaymentStatus.REFUNDED

    def test_partial_refund_drops_to_partial(self):
        txns = [_txn("payment", "100.00"), _txn("refund", "30.00")]
        assert net_paid(txns) == Decimal("70.00")
        assert derive_payment_status(Decimal("100"), txns) == PaymentStatus.PARTIAL

    def test_free_booking_with_nothing_paid_stays_pending(self):
        assert derive_payment_status(Decimal("0"), []) == PaymentStatus.PENDING


class TestParseMoney:
    def test_accepts_two_places(self):
        assert parse_money("19.5") == Decimal("19.50")
        assert parse_money(Decimal("20")) == Decimal("20.00")

    @pytest.mark.parametrize("value", ["1.005", "abc", "NaN"])
    def test_rejects_bad_amounts(self, value):
        with pytest.raises(ValidationException) as exc:
            parse_money(value)
        assert exc.value.code == "INVALID_AMOUNT"


def test_compute_shortages_reports_every_short_item_in_id_order():
    stock = {
        "b-mic": SimpleNamespace(total_quantity=3),
        "a-cam": SimpleNamespace(total_quantity=1),
        "c-stand": SimpleNamespace(total_quantity=10),
    }
    shortages = compute_shortages(
        {"b-mic": 2, "a-cam": 1, "c-stand": 4},
        stock,
        {"b-mic": 2, "a-cam": 1},
    )
    assert [(s.equipment_id, s.requested, s.available_count) for s in shortages] == [
        ("a-cam", 1, 0),
        ("b-mic", 2, 1),
    ]


def test_compute_shortages_never_reports_negative_availability():
    shortages = compute_shortages(
        {"mic": 1}, {"mic": SimpleNamespace(total_quantity=2)}, {"mic": 5}
    )
    assert shortages[0].available_count == 0
