"""
Paid-status evaluation for orders.

An order side is paid once what is still owed is within the payment
tolerance, so small rounding or haggling gaps do not leave an order open
forever. A side whose total is zero or negative has nothing to be paid
against and is never reported as paid.
"""

from typing import Iterable, Optional

from haulbook.core.config import settings
from haulbook.models.order import AccountSide, Order, PaymentRecord


def paid_cents(payments: Iterable[PaymentRecord]) -> int:
    return sum(p.amount_cents for p in payments)


def outstanding_cents(
    order: Order,
    side: AccountSide,
    payments: Optional[Iterable[PaymentRecord]] = None
) -> int:
    """Amount still owed on one side, never negative."""
    if payments is None:
        payments = order.payments_for(side)
    return max(0, order.total_for(side) - paid_cents(payments))


def is_side_paid(
    order: Order,
    side: AccountSide,
    payments: Optional[Iterable[PaymentRecord]] = None,
    tolerance_cents: Optional[int] = None
) -> bool:
    """
    True iff ``total - sum(payments) <= tolerance``.

    ``payments`` overrides the order's own list, which lets callers ask
    whether an order would be paid without a particular ledger entry.
    """
    if tolerance_cents is None:
        tolerance_cents = settings.PAYMENT_TOLERANCE_CENTS

    total = order.total_for(side)
    if total <= 0:
        return False

    if payments is None:
        payments = order.payments_for(side)
    return total - paid_cents(payments) <= tolerance_cents


def is_expense_paid(order: Order, tolerance_cents: Optional[int] = None) -> bool:
    return is_side_paid(order, AccountSide.EXPENSE, tolerance_cents=tolerance_cents)


def is_revenue_paid(order: Order, tolerance_cents: Optional[int] = None) -> bool:
    return is_side_paid(order, AccountSide.REVENUE, tolerance_cents=tolerance_cents)


def refresh_paid_flags(order: Order, tolerance_cents: Optional[int] = None) -> Order:
    order.paid = is_expense_paid(order, tolerance_cents)
    order.party_paid = is_revenue_paid(order, tolerance_cents)
    return order
