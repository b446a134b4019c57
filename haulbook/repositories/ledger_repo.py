"""
LedgerRepository - persistence for ledger entries.

Wraps a DocumentStore so the allocation engine and services can be
handed a real MongoDB collection or an in-memory double alike.
"""

from typing import List, Optional

from haulbook.db.store import DocumentStore
from haulbook.models.ledger import LedgerEntry, LedgerType
from haulbook.models.order import AccountSide


class LedgerRepository:
    """Repository for ledger entries (credit/debit transactions)."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def save(self, entry: LedgerEntry) -> LedgerEntry:
        await self.store.put(entry.to_document())
        return entry

    async def get(self, entry_id: str) -> Optional[LedgerEntry]:
        doc = await self.store.get(entry_id)
        if not doc:
            return None
        return LedgerEntry.from_document(doc)

    async def delete(self, entry_id: str) -> None:
        await self.store.delete(entry_id)

    async def list(
        self,
        type: Optional[LedgerType] = None,
        supplier: Optional[str] = None,
        party_name: Optional[str] = None,
        include_voided: bool = False
    ) -> List[LedgerEntry]:
        """List entries, newest first (by creation time, then date)."""
        query = {}
        if type is not None:
            query["type"] = LedgerType(type).value
        if supplier is not None:
            query["supplier"] = supplier
        if party_name is not None:
            query["party_name"] = party_name

        docs = await self.store.list(query)
        entries = [LedgerEntry.from_document(doc) for doc in docs]
        if not include_voided:
            entries = [e for e in entries if not e.voided]

        entries.sort(key=lambda e: (e.created_at, e.date), reverse=True)
        return entries

    async def list_for_counterparty(
        self,
        counterparty_name: str,
        side: AccountSide,
        include_voided: bool = False
    ) -> List[LedgerEntry]:
        """Entries that allocate into ``side`` of this counterparty's orders."""
        if side is AccountSide.EXPENSE:
            return await self.list(
                type=LedgerType.DEBIT,
                supplier=counterparty_name,
                include_voided=include_voided
            )
        return await self.list(
            type=LedgerType.CREDIT,
            party_name=counterparty_name,
            include_voided=include_voided
        )

    async def get_balance_cents(self) -> int:
        """Income minus expenses over every non-voided entry."""
        entries = await self.list()
        return sum(e.signed_amount_cents() for e in entries)
