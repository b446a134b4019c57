"""Payment and ledger validation utilities."""
from typing import List, Optional

from haulbook.models.order import PaymentRecord


class PaymentValidationError(Exception):
    """Custom exception for payment and ledger validation errors."""
    pass


def validate_amount(amount_cents: int, label: str = "Amount") -> None:
    """Amounts are positive integer minor units."""
    if amount_cents is None or amount_cents <= 0:
        raise PaymentValidationError(f"{label} must be greater than 0: {amount_cents}")


def validate_order_totals(original_total_cents: int, total_cents: int) -> None:
    if original_total_cents < 0:
        raise PaymentValidationError(
            f"Original total cannot be negative: {original_total_cents}"
        )
    if total_cents < 0:
        raise PaymentValidationError(f"Total cannot be negative: {total_cents}")


def validate_counterparty(
    entry_type: str,
    supplier: Optional[str],
    party_name: Optional[str]
) -> None:
    """
    Rules:
    - Only expense (debit) entries may name a supplier
    - Only income (credit) entries may name a party
    """
    if supplier and entry_type != "debit":
        raise PaymentValidationError("Only debit entries can be tied to a supplier")
    if party_name and entry_type != "credit":
        raise PaymentValidationError("Only credit entries can be tied to a party")


def validate_payment_fits(
    payments: List[PaymentRecord],
    order_total_cents: int,
    new_amount_cents: int,
    exclude_payment_id: Optional[str] = None
) -> None:
    """Total payments on one side of an order cannot exceed that side's total."""
    other_total = sum(
        p.amount_cents for p in payments if p.id != exclude_payment_id
    )
    if other_total + new_amount_cents > order_total_cents:
        raise PaymentValidationError(
            f"Total payments ({other_total + new_amount_cents}) cannot exceed "
            f"order total ({order_total_cents})"
        )


def clean_text(value: Optional[str]) -> Optional[str]:
    """Strip names and notes; blank becomes None."""
    if value is None:
        return None
    value = value.strip()
    return value or None
