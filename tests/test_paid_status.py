"""Tests for paid-status evaluation."""
from datetime import date

from haulbook.models.order import AccountSide, Order, PaymentRecord
from haulbook.services.paid_status import (
    is_side_paid,
    is_expense_paid,
    is_revenue_paid,
    outstanding_cents,
    refresh_paid_flags,
)

TOLERANCE = 10000


def _order(original_total_cents=0, total_cents=0, partial=(), customer=()):
    return Order(
        date=date(2024, 1, 1),
        party_name="Riverside Builders",
        supplier="Acme Quarry",
        original_total_cents=original_total_cents,
        total_cents=total_cents,
        partial_payments=[PaymentRecord(amount_cents=a) for a in partial],
        customer_payments=[PaymentRecord(amount_cents=a) for a in customer],
    )


class TestIsSidePaid:

    def test_gap_equal_to_tolerance_is_paid(self):
        order = _order(original_total_cents=100000, partial=[90000])
        assert is_side_paid(order, AccountSide.EXPENSE, tolerance_cents=TOLERANCE) is True

    def test_gap_one_cent_over_tolerance_is_not_paid(self):
        order = _order(original_total_cents=100000, partial=[89999])
        assert is_side_paid(order, AccountSide.EXPENSE, tolerance_cents=TOLERANCE) is False

    def test_overpaid_is_paid(self):
        order = _order(total_cents=50000, customer=[60000])
        assert is_side_paid(order, AccountSide.REVENUE, tolerance_cents=TOLERANCE) is True

    def test_zero_total_is_never_paid(self):
        order = _order(original_total_cents=0)
        assert is_side_paid(order, AccountSide.EXPENSE, tolerance_cents=TOLERANCE) is False

    def test_negative_total_is_never_paid(self):
        order = _order(total_cents=-500, customer=[100])
        assert is_side_paid(order, AccountSide.REVENUE, tolerance_cents=TOLERANCE) is False

    def test_payments_override_the_order_list(self):
        order = _order(original_total_cents=100000, partial=[100000])
        assert is_side_paid(order, AccountSide.EXPENSE, [], tolerance_cents=TOLERANCE) is False

    def test_sides_are_evaluated_independently(self):
        order = _order(original_total_cents=100000, total_cents=150000, partial=[100000])
        assert is_expense_paid(order, TOLERANCE) is True
        assert is_revenue_paid(order, TOLERANCE) is False

    def test_default_tolerance_comes_from_settings(self, monkeypatch):
        from haulbook.core.config import settings
        monkeypatch.setattr(settings, "PAYMENT_TOLERANCE_CENTS", 0)

        order = _order(original_total_cents=100000, partial=[99999])
        assert is_side_paid(order, AccountSide.EXPENSE) is False


def test_outstanding_is_never_negative():
    order = _order(original_total_cents=100000, partial=[120000])
    assert outstanding_cents(order, AccountSide.EXPENSE) == 0


def test_refresh_paid_flags_sets_both_flags():
    order = _order(original_total_cents=100000, total_cents=150000, partial=[95000], customer=[10000])

    refresh_paid_flags(order, TOLERANCE)

    assert order.paid is True
    assert order.party_paid is False
