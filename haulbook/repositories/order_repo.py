from typing import List, Optional

from haulbook.db.store import DocumentStore
from haulbook.models.order import AccountSide, Order, PaymentRecord
from haulbook.services.paid_status import refresh_paid_flags


class OrderRepository:
    """Order database operations."""

    def __init__(self, store: DocumentStore, tolerance_cents: Optional[int] = None):
        self.store = store
        self.tolerance_cents = tolerance_cents

    async def get(self, order_id: str) -> Optional[Order]:
        doc = await self.store.get(order_id)
        if not doc:
            return None
        return Order.from_document(doc)

    async def list(
        self,
        supplier: Optional[str] = None,
        party_name: Optional[str] = None
    ) -> List[Order]:
        """List orders, oldest first."""
        query = {}
        if supplier is not None:
            query["supplier"] = supplier
        if party_name is not None:
            query["party_name"] = party_name

        docs = await self.store.list(query)
        orders = [Order.from_document(doc) for doc in docs]
        orders.sort(key=lambda o: (o.date, o.created_at))
        return orders

    async def list_for_counterparty(self, side: AccountSide, counterparty_name: str) -> List[Order]:
        if side is AccountSide.EXPENSE:
            return await self.list(supplier=counterparty_name)
        return await self.list(party_name=counterparty_name)

    async def save(self, order: Order) -> Order:
        """Persist the whole order document, recomputing the paid flags first."""
        refresh_paid_flags(order, self.tolerance_cents)
        order.touch()
        await self.store.put(order.to_document())
        return order

    async def save_payments(
        self,
        order: Order,
        side: AccountSide,
        payments: List[PaymentRecord]
    ) -> Order:
        """Replace one side's payment list; the other side is written back unchanged."""
        updated = order.model_copy(update={side.payments_field: list(payments)})
        return await self.save(updated)

    async def delete(self, order_id: str) -> None:
        await self.store.delete(order_id)
