"""
Order service - order CRUD and payments entered directly on an order.

Records derived from a ledger entry belong to that entry: editing or
removing one on the order is followed by a redistribute of the entry so
the ledger stays the source of truth. Manual records are mirrored into the
ledger as counterparty-less entries, which the allocation engine ignores.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel

from haulbook.models.allocation import AllocationReport, AllocationWarning
from haulbook.models.ledger import LedgerSource, LedgerType
from haulbook.models.order import AccountSide, LedgerOrigin, Order, PaymentRecord
from haulbook.repositories.order_repo import OrderRepository
from haulbook.schemas.ledger import LedgerEntryCreate
from haulbook.schemas.order import OrderCreate, OrderUpdate, PaymentUpdate
from haulbook.services.allocation import AllocationEngine
from haulbook.services.ledger_service import LedgerService
from haulbook.utils.payment_validation import (
    PaymentValidationError,
    clean_text,
    validate_amount,
    validate_order_totals,
    validate_payment_fits,
)

logger = logging.getLogger(__name__)


class OrderMutationResult(BaseModel):
    order: Optional[Order] = None
    reports: List[AllocationReport] = []
    warnings: List[AllocationWarning] = []

    def add(self, report: AllocationReport) -> None:
        self.reports.append(report)
        self.warnings.extend(report.warnings)


def _ledger_type_for(side: AccountSide, amount_cents: int) -> LedgerType:
    """Money paid to a supplier is a debit, money from a party a credit; negative flips it."""
    positive = LedgerType.DEBIT if side is AccountSide.EXPENSE else LedgerType.CREDIT
    if amount_cents >= 0:
        return positive
    return LedgerType.CREDIT if positive is LedgerType.DEBIT else LedgerType.DEBIT


class OrderService:

    def __init__(
        self,
        orders: OrderRepository,
        engine: AllocationEngine,
        ledger_service: LedgerService
    ):
        self.orders = orders
        self.engine = engine
        self.ledger_service = ledger_service

    # ===== ORDERS =====

    async def create_order(self, data: OrderCreate) -> Order:
        validate_order_totals(data.original_total_cents, data.total_cents)
        party_name = clean_text(data.party_name)
        if not party_name:
            raise PaymentValidationError("Party name is required")

        order = Order(
            date=data.date,
            party_name=party_name,
            supplier=clean_text(data.supplier),
            site_name=clean_text(data.site_name),
            material=clean_text(data.material),
            original_total_cents=data.original_total_cents,
            total_cents=data.total_cents,
            additional_cost_cents=data.additional_cost_cents,
        )
        await self.orders.save(order)
        logger.info("Created order %s for %s", order.id, order.party_name)
        return order

    async def get_order(self, order_id: str) -> Optional[Order]:
        return await self.orders.get(order_id)

    async def list_orders(
        self,
        supplier: Optional[str] = None,
        party_name: Optional[str] = None
    ) -> List[Order]:
        return await self.orders.list(supplier=supplier, party_name=party_name)

    async def update_order(self, order_id: str, data: OrderUpdate) -> Optional[OrderMutationResult]:
        """
        Apply a partial update.

        A changed total re-splits every ledger entry with a record on the
        order. A changed supplier or party drops that side's derived records
        and re-splits their entries over the old counterparty's orders.
        """
        order = await self.orders.get(order_id)
        if order is None:
            return None

        changes = {}
        for name, value in data.model_dump(exclude_unset=True).items():
            if name in ("party_name", "supplier", "site_name", "material"):
                changes[name] = clean_text(value)
            elif value is not None:
                changes[name] = value
        if "party_name" in changes and not changes["party_name"]:
            raise PaymentValidationError("Party name is required")

        updated = order.model_copy(update=changes)
        validate_order_totals(updated.original_total_cents, updated.total_cents)

        affected = set()
        for side in AccountSide:
            if updated.total_for(side) != order.total_for(side):
                affected |= {
                    p.ledger_entry_id for p in order.payments_for(side)
                    if isinstance(p.origin, LedgerOrigin)
                }
            if updated.counterparty_for(side) != order.counterparty_for(side):
                current = updated.payments_for(side)
                affected |= {
                    p.ledger_entry_id for p in current if isinstance(p.origin, LedgerOrigin)
                }
                updated = updated.model_copy(update={
                    side.payments_field: [p for p in current if not isinstance(p.origin, LedgerOrigin)]
                })

        await self.orders.save(updated)
        result = OrderMutationResult(order=updated)
        for ledger_entry_id in sorted(affected):
            await self.ledger_service.track_allocation(
                result, self.engine.redistribute(ledger_entry_id), ledger_entry_id
            )
        if affected:
            result.order = await self.orders.get(order_id)
        return result

    async def delete_order(self, order_id: str) -> Optional[OrderMutationResult]:
        """Delete an order; ledger money tagged on it is re-split over the remaining orders."""
        order = await self.orders.get(order_id)
        if order is None:
            return None

        await self.orders.delete(order_id)
        logger.info("Deleted order %s", order_id)

        result = OrderMutationResult(order=order)
        for ledger_entry_id in sorted(order.ledger_entry_ids()):
            await self.ledger_service.track_allocation(
                result, self.engine.redistribute(ledger_entry_id), ledger_entry_id
            )
        return result

    # ===== PAYMENTS =====

    async def add_payment(
        self,
        order_id: str,
        side: AccountSide,
        amount_cents: int,
        note: Optional[str] = None,
        record_in_ledger: bool = True
    ) -> Optional[OrderMutationResult]:
        order = await self.orders.get(order_id)
        if order is None:
            return None

        validate_amount(amount_cents, "Payment amount")
        payments = order.payments_for(side)
        validate_payment_fits(payments, order.total_for(side), amount_cents)

        record = PaymentRecord(amount_cents=amount_cents, note=clean_text(note))
        payments.append(record)
        order = await self.orders.save_payments(order, side, payments)

        if record_in_ledger:
            await self._post_to_ledger(
                order, side, amount_cents, LedgerSource.ORDER_PAYMENT, record.note
            )
        return OrderMutationResult(order=order)

    async def update_payment(
        self,
        order_id: str,
        side: AccountSide,
        payment_id: str,
        data: PaymentUpdate
    ) -> Optional[OrderMutationResult]:
        order = await self.orders.get(order_id)
        if order is None:
            return None

        payments = order.payments_for(side)
        index = next((i for i, p in enumerate(payments) if p.id == payment_id), None)
        if index is None:
            return None
        record = payments[index]

        changes = data.model_dump(exclude_unset=True)
        amount_cents = changes.get("amount_cents", record.amount_cents)
        validate_amount(amount_cents, "Payment amount")
        validate_payment_fits(payments, order.total_for(side), amount_cents, exclude_payment_id=payment_id)
        origin = record.origin
        if isinstance(origin, LedgerOrigin) and amount_cents > record.amount_cents:
            await self._validate_entry_covers(order, side, origin.ledger_entry_id, payment_id, amount_cents)

        update = {"amount_cents": amount_cents, "updated_at": datetime.now(timezone.utc)}
        if changes.get("date") is not None:
            update["date"] = changes["date"]
        if "note" in changes:
            update["note"] = clean_text(changes["note"])
        payments[index] = PaymentRecord(**{**record.model_dump(), **update})
        order = await self.orders.save_payments(order, side, payments)

        result = OrderMutationResult(order=order)
        if isinstance(origin, LedgerOrigin):
            await self._redistribute(result, origin.ledger_entry_id, order_id)
        else:
            delta = amount_cents - record.amount_cents
            if delta:
                await self._post_to_ledger(
                    order, side, delta, LedgerSource.ORDER_PAYMENT_UPDATE,
                    f"Payment adjustment on order {order.id}"
                )
        return result

    async def remove_payment(
        self,
        order_id: str,
        side: AccountSide,
        payment_id: str
    ) -> Optional[OrderMutationResult]:
        order = await self.orders.get(order_id)
        if order is None:
            return None

        payments = order.payments_for(side)
        record = next((p for p in payments if p.id == payment_id), None)
        if record is None:
            return None

        kept = [p for p in payments if p.id != payment_id]
        order = await self.orders.save_payments(order, side, kept)

        result = OrderMutationResult(order=order)
        origin = record.origin
        if isinstance(origin, LedgerOrigin):
            await self._redistribute(result, origin.ledger_entry_id, order_id)
        else:
            await self._post_to_ledger(
                order, side, -record.amount_cents, LedgerSource.ORDER_PAYMENT_UPDATE,
                f"Payment removed from order {order.id}"
            )
        return result

    # ===== PRIVATE HELPERS =====

    async def _validate_entry_covers(
        self,
        order: Order,
        side: AccountSide,
        ledger_entry_id: str,
        payment_id: str,
        amount_cents: int
    ) -> None:
        """An edited derived record may not tag more than its ledger entry holds."""
        entry = await self.ledger_service.get_entry(ledger_entry_id)
        if entry is None:
            raise PaymentValidationError("Ledger entry for this payment no longer exists")

        counterparty = order.counterparty_for(side)
        orders = await self.orders.list_for_counterparty(side, counterparty) if counterparty else [order]
        tagged_cents = sum(
            p.amount_cents
            for o in orders
            for p in o.payments_for(side)
            if p.is_from(ledger_entry_id) and p.id != payment_id
        )
        if tagged_cents + amount_cents > entry.amount_cents:
            raise PaymentValidationError(
                f"Payment exceeds ledger entry: {entry.amount_cents - tagged_cents} cents left to tag"
            )

    async def _redistribute(self, result: OrderMutationResult, ledger_entry_id: str, order_id: str) -> None:
        await self.ledger_service.track_allocation(
            result, self.engine.redistribute(ledger_entry_id), ledger_entry_id
        )
        result.order = await self.orders.get(order_id)

    async def _post_to_ledger(
        self,
        order: Order,
        side: AccountSide,
        amount_cents: int,
        source: LedgerSource,
        note: Optional[str]
    ) -> None:
        """Mirror a manual order payment as a ledger entry without counterparty."""
        entry = LedgerEntryCreate(
            type=_ledger_type_for(side, amount_cents),
            amount_cents=abs(amount_cents),
            note=note or f"Payment on order {order.id} ({order.party_name})",
            source=source,
        )
        await self.ledger_service.create_entry(entry)
