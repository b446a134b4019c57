from typing import Optional, List, Union
from dataclasses import dataclass
import datetime as dt
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from haulbook.models.base import MongoModel, new_id, _utcnow, ensure_utc


class AccountSide(str, Enum):
    """
    The two independently reconciled halves of an order.

    EXPENSE: what we owe the supplier (original_total_cents / partial_payments)
    REVENUE: what the party owes us (total_cents / customer_payments)
    """
    EXPENSE = "expense"
    REVENUE = "revenue"

    @property
    def payments_field(self) -> str:
        return "partial_payments" if self is AccountSide.EXPENSE else "customer_payments"

    @property
    def total_field(self) -> str:
        return "original_total_cents" if self is AccountSide.EXPENSE else "total_cents"

    @property
    def paid_flag_field(self) -> str:
        return "paid" if self is AccountSide.EXPENSE else "party_paid"

    @property
    def counterparty_field(self) -> str:
        return "supplier" if self is AccountSide.EXPENSE else "party_name"


@dataclass(frozen=True)
class ManualOrigin:
    """Entered directly on the order; the allocation engine never changes it."""


@dataclass(frozen=True)
class LedgerOrigin:
    """Created by the allocation engine on behalf of a ledger entry."""
    ledger_entry_id: str


PaymentOrigin = Union[ManualOrigin, LedgerOrigin]


# Embedded documents don't need MongoModel (no separate _id)
class PaymentRecord(BaseModel):
    id: str = Field(default_factory=new_id)
    amount_cents: int
    date: dt.datetime = Field(default_factory=_utcnow)
    note: Optional[str] = None
    ledger_entry_id: Optional[str] = None  # Set only on records derived from a ledger entry
    created_at: Optional[dt.datetime] = Field(default_factory=_utcnow)
    updated_at: Optional[dt.datetime] = None

    @field_validator("date", "created_at", "updated_at")
    @classmethod
    def utc_timestamps(cls, value):
        return ensure_utc(value)

    @property
    def origin(self) -> PaymentOrigin:
        if self.ledger_entry_id:
            return LedgerOrigin(self.ledger_entry_id)
        return ManualOrigin()

    def is_from(self, ledger_entry_id: str) -> bool:
        return self.origin == LedgerOrigin(ledger_entry_id)


class Order(MongoModel):
    date: dt.date
    party_name: str
    supplier: Optional[str] = None
    site_name: Optional[str] = None
    material: Optional[str] = None

    # All monetary values in integer minor units
    original_total_cents: int = 0  # Cost basis, owed to the supplier
    total_cents: int = 0           # Selling basis, owed by the party
    additional_cost_cents: int = 0

    partial_payments: List[PaymentRecord] = []   # Expense side
    customer_payments: List[PaymentRecord] = []  # Revenue side

    # Denormalised paid flags, recomputed on every payment write
    paid: bool = False
    party_paid: bool = False

    @property
    def profit_cents(self) -> int:
        return self.total_cents - (self.original_total_cents + self.additional_cost_cents)

    def payments_for(self, side: AccountSide) -> List[PaymentRecord]:
        return list(getattr(self, side.payments_field))

    def total_for(self, side: AccountSide) -> int:
        return getattr(self, side.total_field)

    def counterparty_for(self, side: AccountSide) -> Optional[str]:
        return getattr(self, side.counterparty_field)

    def ledger_entry_ids(self) -> set:
        """Ids of every ledger entry with a record on either side."""
        ids = set()
        for record in self.partial_payments + self.customer_payments:
            if isinstance(record.origin, LedgerOrigin):
                ids.add(record.ledger_entry_id)
        return ids
