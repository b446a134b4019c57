"""
ReconciliationService - repairs drift between the ledger and order payments.

Allocation writes are sequential and not atomic, and a delete can fail
halfway. Reconciliation strips tagged payment records whose ledger entry
no longer exists (or is voided), reports how each entry is spread over the
counterparty's orders, and retries allocation runs that left failed writes
behind. It never creates an allocation on its own.
"""

import logging
from typing import List

from haulbook.models.allocation import (
    AllocationOperation,
    AllocationReport,
    AllocationRun,
    EntryDistributionStatus,
    ReconciliationReport,
    WarningKind,
    AllocationWarning,
)
from haulbook.models.order import AccountSide, LedgerOrigin
from haulbook.repositories.allocation_run_repo import AllocationRunRepository
from haulbook.repositories.ledger_repo import LedgerRepository
from haulbook.repositories.order_repo import OrderRepository
from haulbook.services.allocation import AllocationEngine
from haulbook.services.paid_status import is_side_paid

logger = logging.getLogger(__name__)


class ReconciliationService:

    def __init__(
        self,
        orders: OrderRepository,
        ledger: LedgerRepository,
        engine: AllocationEngine,
        runs: AllocationRunRepository
    ):
        self.orders = orders
        self.ledger = ledger
        self.engine = engine
        self.runs = runs

    async def reconcile_counterparty(
        self,
        counterparty_name: str,
        side: AccountSide
    ) -> ReconciliationReport:
        """
        Remove orphan records from one side of the counterparty's orders.

        An orphan is a record tagged with a ledger entry id that is not among
        the counterparty's non-voided entries for that side. Paid flags are
        recomputed on every order that is written. Running it twice in a
        row changes nothing the second time.
        """
        report = ReconciliationReport(counterparty_name=counterparty_name, side=side)

        entries = await self.ledger.list_for_counterparty(counterparty_name, side)
        valid_ids = {entry.id for entry in entries}
        orders = await self.orders.list_for_counterparty(side, counterparty_name)

        for order in orders:
            current = order.payments_for(side)
            kept = []
            orphans = []
            for payment in current:
                origin = payment.origin
                if isinstance(origin, LedgerOrigin) and origin.ledger_entry_id not in valid_ids:
                    orphans.append(payment)
                else:
                    kept.append(payment)

            flag_drift = getattr(order, side.paid_flag_field) != is_side_paid(
                order, side, kept, self.orders.tolerance_cents
            )
            if not orphans and not flag_drift:
                continue

            try:
                await self.orders.save_payments(order, side, kept)
            except Exception as exc:
                logger.exception("Failed to repair order %s", order.id)
                report.failed_order_ids.append(order.id)
                report.warnings.append(AllocationWarning(
                    kind=WarningKind.ORDER_WRITE_FAILURE,
                    message=f"Order {order.id} could not be repaired: {exc}",
                    counterparty_name=counterparty_name,
                    order_id=order.id,
                ))
                continue

            report.orders_updated.append(order.id)
            for orphan in orphans:
                report.orphans_removed += 1
                report.warnings.append(AllocationWarning(
                    kind=WarningKind.ORPHAN_PAYMENT,
                    message=f"Removed orphan payment {orphan.id} from order {order.id}",
                    ledger_entry_id=orphan.ledger_entry_id,
                    counterparty_name=counterparty_name,
                    amount_cents=orphan.amount_cents,
                    order_id=order.id,
                ))
                logger.info(
                    "Removed orphan payment %s (ledger entry %s, %s) from order %s",
                    orphan.id, orphan.ledger_entry_id, orphan.amount_cents, order.id
                )

        return report

    async def check_counterparty_totals(
        self,
        counterparty_name: str,
        side: AccountSide
    ) -> List[EntryDistributionStatus]:
        """Compare each entry's amount with what is tagged on the counterparty's orders."""
        entries = await self.ledger.list_for_counterparty(counterparty_name, side)
        orders = await self.orders.list_for_counterparty(side, counterparty_name)

        statuses = []
        for entry in entries:
            tagged = 0
            order_ids = []
            for order in orders:
                own = [p for p in order.payments_for(side) if p.is_from(entry.id)]
                if own:
                    tagged += sum(p.amount_cents for p in own)
                    order_ids.append(order.id)
            status = EntryDistributionStatus(
                ledger_entry_id=entry.id,
                amount_cents=entry.amount_cents,
                tagged_cents=tagged,
                order_ids=order_ids,
            )
            if status.undistributed_cents:
                logger.info(
                    "Ledger entry %s for %s: %s of %s tagged on orders",
                    entry.id, counterparty_name, tagged, entry.amount_cents
                )
            statuses.append(status)
        return statuses

    async def retry_failed_runs(self) -> List[AllocationReport]:
        """Replay unresolved allocation runs; a run resolves once its retry writes everything."""
        reports = []
        for run in await self.runs.list_unresolved():
            report = await self._retry(run)
            reports.append(report)

            run.attempts += 1
            run.applied_order_ids = report.applied_order_ids
            run.failed_order_ids = report.failed_order_ids
            if not report.has_failures:
                run.mark_resolved()
            else:
                run.touch()
            await self.runs.save(run)
        return reports

    async def _retry(self, run: AllocationRun) -> AllocationReport:
        if run.operation == AllocationOperation.REVERT:
            return await self.engine.revert(run.ledger_entry_id, run.counterparty_name, run.side)
        return await self.engine.redistribute(run.ledger_entry_id)
