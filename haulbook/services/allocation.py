"""
AllocationEngine - splits ledger entries across a counterparty's orders.

Core algorithm (distribute):
1. Load every order of the counterparty
2. For each order, work out what is still owed ignoring this entry's own
   records, and whether the order is already paid without them
3. Skip orders with nothing owed or already paid
4. Walk the rest oldest-first (order date, then creation time)
5. Give each order min(left to place, still owed) as one tagged record,
   replacing any earlier record of the same entry
6. Write each changed order back, one awaited write at a time

Every call first computes a list of planned writes and only then applies
them. There is no multi-document transaction: a failing write is logged,
reported and skipped, and the remaining writes still go out. The report
names the orders that were and were not written so the reconciliation
service can finish the job later.

Money is never taken back from a ledger entry here. Shortfalls and
conflicts are reported as warnings; the ledger entry stays as it is.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from haulbook.models.allocation import (
    AllocationOperation,
    AllocationReport,
    WarningKind,
)
from haulbook.models.order import AccountSide, Order, PaymentRecord
from haulbook.repositories.ledger_repo import LedgerRepository
from haulbook.repositories.order_repo import OrderRepository
from haulbook.services.paid_status import is_side_paid, outstanding_cents

logger = logging.getLogger(__name__)

LEDGER_PAYMENT_NOTE = "From ledger entry"


@dataclass
class PlannedWrite:
    """One order document to be written back in full."""
    order: Order
    tagged_cents: int = 0


@dataclass
class OrderCandidate:
    """An order as seen by one ledger entry."""
    order: Order
    side: AccountSide
    current: List[PaymentRecord]
    own: List[PaymentRecord] = field(default_factory=list)  # Records of this entry
    remaining_cents: int = 0  # Still owed, ignoring this entry's records
    eligible: bool = False

    @property
    def own_cents(self) -> int:
        return sum(p.amount_cents for p in self.own)


def _sort_key(order: Order):
    return (order.date, order.created_at)


def _replace_own(
    current: List[PaymentRecord],
    ledger_entry_id: str,
    record: Optional[PaymentRecord]
) -> List[PaymentRecord]:
    """
    Swap this entry's records for ``record`` (or drop them when None).

    The replacement takes the position of the first old record so that an
    unchanged allocation produces an identical list.
    """
    result = []
    placed = False
    for payment in current:
        if not payment.is_from(ledger_entry_id):
            result.append(payment)
        elif record is not None and not placed:
            result.append(record)
            placed = True
    if record is not None and not placed:
        result.append(record)
    return result


def _same_payments(a: List[PaymentRecord], b: List[PaymentRecord]) -> bool:
    return [p.model_dump() for p in a] == [p.model_dump() for p in b]


class AllocationEngine:
    """Distributes, redistributes and reverts ledger-derived payment records."""

    def __init__(
        self,
        orders: OrderRepository,
        ledger: LedgerRepository,
        tolerance_cents: Optional[int] = None
    ):
        self.orders = orders
        self.ledger = ledger
        self.tolerance_cents = tolerance_cents

    # ===== PUBLIC OPERATIONS =====

    async def distribute(
        self,
        ledger_entry_id: str,
        amount_cents: int,
        side: AccountSide,
        counterparty_name: str,
        as_of: Optional[datetime] = None,
        note: Optional[str] = None
    ) -> AllocationReport:
        """Split ``amount_cents`` over the counterparty's outstanding orders, oldest first."""
        as_of = as_of or datetime.now(timezone.utc)
        report = AllocationReport(
            operation=AllocationOperation.DISTRIBUTE,
            ledger_entry_id=ledger_entry_id,
            counterparty_name=counterparty_name,
            side=side,
            requested_cents=amount_cents,
        )

        orders = await self.orders.list_for_counterparty(side, counterparty_name)
        if not orders:
            self._warn_no_orders(report)
            return report

        candidates = self.build_candidates(orders, side, ledger_entry_id)
        writes, allocations, unplaced = self.plan_distribution(
            candidates, ledger_entry_id, amount_cents, as_of, note
        )
        report.allocations = allocations
        report.placed_cents = amount_cents - unplaced

        await self.apply(writes, report)
        if unplaced > 0:
            self._warn_partial(report, unplaced)
        return report

    async def redistribute(
        self,
        ledger_entry_id: str,
        as_of: Optional[datetime] = None
    ) -> AllocationReport:
        """
        Re-split an already distributed entry after its amount, date or an
        order-side record changed.

        Preserve-first: records of this entry stay where their order still
        has demand. Only the uncovered part of the amount is placed, first
        on orders without a record, then as top-ups oldest-first. When the
        amount is below what is already preserved nothing is changed and
        UNDERFUNDED_REDISTRIBUTION is reported.
        """
        entry = await self.ledger.get(ledger_entry_id)
        if entry is None or not entry.is_allocatable:
            logger.info(
                "Ledger entry %s is gone, voided or has no counterparty; reverting",
                ledger_entry_id
            )
            if entry is not None and entry.voided and entry.side is not None:
                return await self.revert(ledger_entry_id, entry.counterparty_name, entry.side)
            return await self.revert(ledger_entry_id)

        side = entry.side
        counterparty_name = entry.counterparty_name
        as_of = as_of or entry.date
        report = AllocationReport(
            operation=AllocationOperation.REDISTRIBUTE,
            ledger_entry_id=ledger_entry_id,
            counterparty_name=counterparty_name,
            side=side,
            requested_cents=entry.amount_cents,
        )

        orders = await self.orders.list_for_counterparty(side, counterparty_name)
        if not orders:
            self._warn_no_orders(report)
            return report

        candidates = self.build_candidates(orders, side, ledger_entry_id)
        preserved = self.preserved_allocations(candidates)
        preserved_total = sum(preserved.values())

        if entry.amount_cents < preserved_total:
            report.allocations = {c.order.id: c.own_cents for c in candidates if c.own}
            report.placed_cents = sum(report.allocations.values())
            report.warn(
                WarningKind.UNDERFUNDED_REDISTRIBUTION,
                f"Ledger entry {ledger_entry_id} is {entry.amount_cents} but "
                f"{preserved_total} is already allocated to {counterparty_name}'s orders; "
                "reduce an order payment first",
                amount_cents=entry.amount_cents,
                placed_cents=preserved_total,
            )
            logger.warning(
                "Underfunded redistribution for ledger entry %s: amount %s < preserved %s",
                ledger_entry_id, entry.amount_cents, preserved_total
            )
            return report

        targets, unplaced = self.plan_targets(
            candidates, preserved, entry.amount_cents - preserved_total
        )
        writes = self.plan_redistribution(candidates, targets, ledger_entry_id, as_of)
        report.allocations = {oid: cents for oid, cents in targets.items() if cents > 0}
        report.placed_cents = entry.amount_cents - unplaced

        await self.apply(writes, report)
        if unplaced > 0:
            self._warn_partial(report, unplaced)
        return report

    async def revert(
        self,
        ledger_entry_id: str,
        counterparty_name: Optional[str] = None,
        side: Optional[AccountSide] = None
    ) -> AllocationReport:
        """
        Remove every record of this entry from the counterparty's orders.

        Without a counterparty every order is scanned. Both payment lists
        are checked; nothing is redistributed elsewhere.
        """
        report = AllocationReport(
            operation=AllocationOperation.REVERT,
            ledger_entry_id=ledger_entry_id,
            counterparty_name=counterparty_name,
            side=side,
        )

        if counterparty_name and side is not None:
            orders = await self.orders.list_for_counterparty(side, counterparty_name)
        elif counterparty_name:
            by_supplier = await self.orders.list(supplier=counterparty_name)
            by_party = await self.orders.list(party_name=counterparty_name)
            seen = {o.id: o for o in by_supplier + by_party}
            orders = sorted(seen.values(), key=_sort_key)
        else:
            orders = await self.orders.list()

        writes = self.plan_revert(orders, ledger_entry_id)
        await self.apply(writes, report)
        if writes:
            logger.info(
                "Reverted ledger entry %s from %d order(s)", ledger_entry_id, len(writes)
            )
        return report

    # ===== PLANNING =====

    def build_candidates(
        self,
        orders: List[Order],
        side: AccountSide,
        ledger_entry_id: str
    ) -> List[OrderCandidate]:
        """View each order without this entry's records, oldest debt first."""
        candidates = []
        for order in sorted(orders, key=_sort_key):
            current = order.payments_for(side)
            others = [p for p in current if not p.is_from(ledger_entry_id)]
            own = [p for p in current if p.is_from(ledger_entry_id)]
            remaining = outstanding_cents(order, side, others)
            # An order paid through other means never takes more of this entry
            eligible = remaining > 0 and not is_side_paid(
                order, side, others, self.tolerance_cents
            )
            candidates.append(OrderCandidate(
                order=order,
                side=side,
                current=current,
                own=own,
                remaining_cents=remaining,
                eligible=eligible,
            ))
        return candidates

    def plan_distribution(
        self,
        candidates: List[OrderCandidate],
        ledger_entry_id: str,
        amount_cents: int,
        as_of: datetime,
        note: Optional[str] = None
    ):
        """Planned writes and shares for a fresh oldest-first walk, plus what could not be placed."""
        to_place = amount_cents
        writes = []
        allocations = {}

        for candidate in candidates:
            record = None
            share = 0
            if candidate.eligible and to_place > 0:
                share = min(to_place, candidate.remaining_cents)
                to_place -= share
                record = self._record_for(
                    candidate, share, ledger_entry_id, as_of, keep_date=False, note=note
                )
                allocations[candidate.order.id] = share

            payments = _replace_own(candidate.current, ledger_entry_id, record)
            if not _same_payments(candidate.current, payments):
                updated = candidate.order.model_copy(update={candidate.side.payments_field: payments})
                writes.append(PlannedWrite(order=updated, tagged_cents=share))

        return writes, allocations, to_place

    def preserved_allocations(self, candidates: List[OrderCandidate]) -> Dict[str, int]:
        """Existing records kept by redistribution, trimmed to each order's demand."""
        preserved = {}
        for candidate in candidates:
            if candidate.own and candidate.eligible:
                preserved[candidate.order.id] = min(candidate.own_cents, candidate.remaining_cents)
        return preserved

    def plan_targets(
        self,
        candidates: List[OrderCandidate],
        preserved: Dict[str, int],
        uncovered_cents: int
    ):
        """Target cents per order: preserved amounts plus the uncovered remainder."""
        targets = dict(preserved)
        to_place = uncovered_cents

        for candidate in candidates:
            if to_place <= 0:
                break
            if candidate.eligible and candidate.order.id not in preserved:
                share = min(to_place, candidate.remaining_cents)
                targets[candidate.order.id] = share
                to_place -= share

        for candidate in candidates:
            if to_place <= 0:
                break
            if candidate.order.id in preserved:
                room = candidate.remaining_cents - targets[candidate.order.id]
                if room > 0:
                    top_up = min(room, to_place)
                    targets[candidate.order.id] += top_up
                    to_place -= top_up

        return targets, to_place

    def plan_redistribution(
        self,
        candidates: List[OrderCandidate],
        targets: Dict[str, int],
        ledger_entry_id: str,
        as_of: datetime
    ) -> List[PlannedWrite]:
        writes = []
        for candidate in candidates:
            target = targets.get(candidate.order.id, 0)
            record = None
            if target > 0:
                record = self._record_for(candidate, target, ledger_entry_id, as_of, keep_date=True)

            payments = _replace_own(candidate.current, ledger_entry_id, record)
            if not _same_payments(candidate.current, payments):
                updated = candidate.order.model_copy(update={candidate.side.payments_field: payments})
                writes.append(PlannedWrite(order=updated, tagged_cents=target))
        return writes

    def plan_revert(self, orders: List[Order], ledger_entry_id: str) -> List[PlannedWrite]:
        writes = []
        for order in orders:
            update = {}
            for side in AccountSide:
                current = order.payments_for(side)
                kept = [p for p in current if not p.is_from(ledger_entry_id)]
                if len(kept) != len(current):
                    update[side.payments_field] = kept
            if update:
                writes.append(PlannedWrite(order=order.model_copy(update=update)))
        return writes

    # ===== APPLY =====

    async def apply(self, writes: List[PlannedWrite], report: AllocationReport) -> AllocationReport:
        """Write planned orders one at a time; failures are logged and skipped."""
        for write in writes:
            order_id = write.order.id
            try:
                await self.orders.save(write.order)
                report.applied_order_ids.append(order_id)
            except Exception as exc:
                logger.exception(
                    "Failed to write order %s for ledger entry %s",
                    order_id, report.ledger_entry_id
                )
                report.failed_order_ids.append(order_id)
                report.warn(
                    WarningKind.ORDER_WRITE_FAILURE,
                    f"Order {order_id} could not be updated: {exc}",
                    order_id=order_id,
                )
        return report

    # ===== PRIVATE HELPERS =====

    def _record_for(
        self,
        candidate: OrderCandidate,
        amount_cents: int,
        ledger_entry_id: str,
        as_of: datetime,
        keep_date: bool,
        note: Optional[str] = None
    ) -> PaymentRecord:
        """
        Record carrying ``amount_cents`` for this entry on one order.

        An existing record with the same amount (and, for a fresh
        distribution, the same date) is returned untouched. Redistribution
        keeps the id, date and note of an existing record and only changes
        its amount.
        """
        existing = candidate.own[0] if candidate.own else None
        if existing is not None and len(candidate.own) == 1:
            if existing.amount_cents == amount_cents and (keep_date or existing.date == as_of):
                return existing

        if existing is not None and keep_date:
            return existing.model_copy(update={
                "amount_cents": amount_cents,
                "updated_at": datetime.now(timezone.utc),
            })

        return PaymentRecord(
            amount_cents=amount_cents,
            date=as_of,
            note=note or LEDGER_PAYMENT_NOTE,
            ledger_entry_id=ledger_entry_id,
        )

    def _warn_no_orders(self, report: AllocationReport) -> None:
        report.warn(
            WarningKind.NO_ELIGIBLE_ORDERS,
            f"No orders found for {report.counterparty_name}",
            amount_cents=report.requested_cents,
            placed_cents=0,
        )
        logger.warning(
            "No orders for %s; ledger entry %s was not distributed",
            report.counterparty_name, report.ledger_entry_id
        )

    def _warn_partial(self, report: AllocationReport, unplaced_cents: int) -> None:
        report.warn(
            WarningKind.PARTIAL_DISTRIBUTION,
            f"{unplaced_cents} of {report.requested_cents} could not be placed: "
            f"all of {report.counterparty_name}'s orders are settled",
            amount_cents=report.requested_cents,
            placed_cents=report.placed_cents,
        )
        logger.warning(
            "Partial distribution for ledger entry %s (%s): placed %s of %s",
            report.ledger_entry_id, report.counterparty_name,
            report.placed_cents, report.requested_cents
        )
