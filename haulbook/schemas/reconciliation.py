from typing import List

from pydantic import BaseModel

from haulbook.models.allocation import AllocationReport
from haulbook.models.order import AccountSide


class EntryTotalsResponse(BaseModel):
    ledger_entry_id: str
    amount_cents: int
    tagged_cents: int
    undistributed_cents: int
    order_ids: List[str] = []


class CounterpartyTotalsResponse(BaseModel):
    counterparty_name: str
    side: AccountSide
    entries: List[EntryTotalsResponse]


class RetryResponse(BaseModel):
    retried: int
    resolved: int
    reports: List[AllocationReport]
