from typing import Optional
from datetime import datetime

from haulbook.models.base import MongoModel
from haulbook.models.ledger import LedgerEntry


class PartyPayment(MongoModel):
    """
    Read-side projection of an income ledger entry tied to a party.

    Carries no state of its own: the document id is the ledger entry id and
    every field is copied from the entry, so the projection can be rebuilt
    from the ledger at any time.
    """
    party_name: str
    amount_cents: int
    date: datetime
    note: Optional[str] = None
    ledger_entry_id: str

    @classmethod
    def from_entry(cls, entry: LedgerEntry) -> "PartyPayment":
        return cls(
            id=entry.id,
            party_name=entry.party_name,
            amount_cents=entry.amount_cents,
            date=entry.date,
            note=entry.note,
            ledger_entry_id=entry.id,
            created_at=entry.created_at,
        )
