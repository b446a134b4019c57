from typing import List

from haulbook.db.store import DocumentStore
from haulbook.models.ledger import LedgerEntry
from haulbook.models.party_payment import PartyPayment


class PartyPaymentRepository:
    """Shadow party-payment records, one per income entry tied to a party."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def upsert_from_entry(self, entry: LedgerEntry) -> PartyPayment:
        payment = PartyPayment.from_entry(entry)
        await self.store.put(payment.to_document())
        return payment

    async def remove_for_entry(self, ledger_entry_id: str) -> None:
        await self.store.delete(ledger_entry_id)

    async def list_for_party(self, party_name: str) -> List[PartyPayment]:
        """Payments for a party, most recent first."""
        docs = await self.store.list({"party_name": party_name})
        payments = [PartyPayment.from_document(doc) for doc in docs]
        payments.sort(key=lambda p: p.date, reverse=True)
        return payments

    async def total_for_party(self, party_name: str) -> int:
        payments = await self.list_for_party(party_name)
        return sum(p.amount_cents for p in payments)
