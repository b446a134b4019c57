"""
Ledger model - one credit (income) or debit (expense) transaction.

Design principles:
- The ledger is the source of truth; order payment records tagged with an
  entry id are derived from it
- Debit entries may name a supplier, credit entries may name a party
- Soft delete via ``voided``; hard delete removes the document
- All amounts in integer minor units
"""

from typing import Optional
from datetime import datetime
from enum import Enum

from pydantic import Field, field_validator

from haulbook.models.base import MongoModel, _utcnow, ensure_utc
from haulbook.models.order import AccountSide


class LedgerType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class CounterpartyKind(str, Enum):
    SUPPLIER = "supplier"
    PARTY = "party"
    NONE = "none"


class LedgerSource(str, Enum):
    MANUAL = "manual"
    PARTY_PAYMENT = "party_payment"
    ORDER_PAYMENT = "order_payment"
    ORDER_PAYMENT_UPDATE = "order_payment_update"


class LedgerEntry(MongoModel):
    """
    Invariants:
    - amount_cents > 0
    - supplier only on debit entries, party_name only on credit entries
    """
    type: LedgerType
    amount_cents: int
    date: datetime = Field(default_factory=_utcnow)

    supplier: Optional[str] = None    # Expense entries - supplier of raw materials
    party_name: Optional[str] = None  # Income entries - party the payment came from
    note: Optional[str] = None

    source: LedgerSource = LedgerSource.MANUAL
    voided: bool = False

    @field_validator("date")
    @classmethod
    def utc_date(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def counterparty_kind(self) -> CounterpartyKind:
        if self.type == LedgerType.DEBIT and self.supplier:
            return CounterpartyKind.SUPPLIER
        if self.type == LedgerType.CREDIT and self.party_name:
            return CounterpartyKind.PARTY
        return CounterpartyKind.NONE

    @property
    def counterparty_name(self) -> Optional[str]:
        kind = self.counterparty_kind
        if kind == CounterpartyKind.SUPPLIER:
            return self.supplier
        if kind == CounterpartyKind.PARTY:
            return self.party_name
        return None

    @property
    def side(self) -> Optional[AccountSide]:
        """Which payment list on an order this entry allocates into."""
        kind = self.counterparty_kind
        if kind == CounterpartyKind.SUPPLIER:
            return AccountSide.EXPENSE
        if kind == CounterpartyKind.PARTY:
            return AccountSide.REVENUE
        return None

    @property
    def is_allocatable(self) -> bool:
        return not self.voided and self.side is not None

    def signed_amount_cents(self) -> int:
        """Positive for income, negative for expense."""
        return self.amount_cents if self.type == LedgerType.CREDIT else -self.amount_cents
