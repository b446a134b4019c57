"""
LedgerService - ledger entry lifecycle.

Every create, update, void and delete is saved to the ledger first. The
matching allocation work (distribute, redistribute or revert) runs after
that and can only add warnings to the result: the ledger is the source of
truth and is never rolled back because an order could not be updated.

Update transitions:
- counterparty added            -> distribute
- counterparty removed          -> revert
- counterparty renamed          -> revert old name, distribute new name
- same counterparty, amount or
  date changed                  -> redistribute (preserve-first)
- note only                     -> no order is touched
"""

import logging
from datetime import datetime, timezone
from typing import Awaitable, List, Optional

from pydantic import BaseModel

from haulbook.models.activity import ActivityType, LedgerActivity
from haulbook.models.allocation import (
    AllocationReport,
    AllocationRun,
    AllocationWarning,
    WarningKind,
)
from haulbook.models.base import ensure_utc
from haulbook.models.ledger import CounterpartyKind, LedgerEntry, LedgerType
from haulbook.models.order import AccountSide
from haulbook.models.party_payment import PartyPayment
from haulbook.repositories.activity_repo import ActivityRepository
from haulbook.repositories.allocation_run_repo import AllocationRunRepository
from haulbook.repositories.ledger_repo import LedgerRepository
from haulbook.repositories.party_payment_repo import PartyPaymentRepository
from haulbook.schemas.ledger import LedgerEntryCreate, LedgerEntryUpdate
from haulbook.services.allocation import AllocationEngine
from haulbook.services.reconciliation_service import ReconciliationService
from haulbook.utils.payment_validation import (
    PaymentValidationError,
    clean_text,
    validate_amount,
    validate_counterparty,
)

logger = logging.getLogger(__name__)


class LedgerMutationResult(BaseModel):
    entry: Optional[LedgerEntry] = None
    reports: List[AllocationReport] = []
    warnings: List[AllocationWarning] = []

    def add(self, report: AllocationReport) -> None:
        self.reports.append(report)
        self.warnings.extend(report.warnings)


class LedgerService:

    def __init__(
        self,
        ledger: LedgerRepository,
        engine: AllocationEngine,
        reconciliation: ReconciliationService,
        party_payments: PartyPaymentRepository,
        activities: ActivityRepository,
        runs: AllocationRunRepository
    ):
        self.ledger = ledger
        self.engine = engine
        self.reconciliation = reconciliation
        self.party_payments = party_payments
        self.activities = activities
        self.runs = runs

    # ===== QUERIES =====

    async def get_entry(self, entry_id: str) -> Optional[LedgerEntry]:
        return await self.ledger.get(entry_id)

    async def list_entries(
        self,
        type: Optional[LedgerType] = None,
        supplier: Optional[str] = None,
        party_name: Optional[str] = None,
        include_voided: bool = False
    ) -> List[LedgerEntry]:
        return await self.ledger.list(
            type=type,
            supplier=supplier,
            party_name=party_name,
            include_voided=include_voided
        )

    async def get_balance(self) -> int:
        return await self.ledger.get_balance_cents()

    async def list_activities(self, ledger_entry_id: Optional[str] = None) -> List[LedgerActivity]:
        return await self.activities.list(ledger_entry_id=ledger_entry_id)

    async def list_party_payments(self, party_name: str) -> List[PartyPayment]:
        return await self.party_payments.list_for_party(party_name)

    # ===== MUTATIONS =====

    async def create_entry(self, data: LedgerEntryCreate) -> LedgerMutationResult:
        validate_amount(data.amount_cents)
        supplier = clean_text(data.supplier)
        party_name = clean_text(data.party_name)
        validate_counterparty(LedgerType(data.type).value, supplier, party_name)

        entry = LedgerEntry(
            type=data.type,
            amount_cents=data.amount_cents,
            date=data.date or datetime.now(timezone.utc),
            supplier=supplier,
            party_name=party_name,
            note=clean_text(data.note),
            source=data.source,
        )
        await self.ledger.save(entry)
        logger.info("Created %s ledger entry %s for %s", entry.type.value, entry.id, entry.amount_cents)

        result = LedgerMutationResult(entry=entry)
        if entry.is_allocatable:
            # Clear leftovers of earlier failed deletes before placing new money
            await self._reconcile_quietly(entry.counterparty_name, entry.side)
            await self.track_allocation(result, self.engine.distribute(
                entry.id,
                entry.amount_cents,
                entry.side,
                entry.counterparty_name,
                entry.date
            ))

        await self._sync_party_payment(entry)
        await self._log_activity(LedgerActivity.for_entry(ActivityType.CREATED, entry))
        return result

    async def update_entry(self, entry_id: str, data: LedgerEntryUpdate) -> Optional[LedgerMutationResult]:
        before = await self.ledger.get(entry_id)
        if before is None:
            return None
        if before.voided:
            raise PaymentValidationError("Voided ledger entries cannot be edited")

        changes = data.model_dump(exclude_unset=True)
        after = before.model_copy(deep=True)
        if "amount_cents" in changes:
            validate_amount(changes["amount_cents"])
            after.amount_cents = changes["amount_cents"]
        if changes.get("date") is not None:
            after.date = ensure_utc(changes["date"])
        if "note" in changes:
            after.note = clean_text(changes["note"])
        if "supplier" in changes:
            after.supplier = clean_text(changes["supplier"])
        if "party_name" in changes:
            after.party_name = clean_text(changes["party_name"])
        validate_counterparty(after.type.value, after.supplier, after.party_name)

        after.touch()
        await self.ledger.save(after)

        result = LedgerMutationResult(entry=after)
        await self._reallocate(before, after, result)
        await self._sync_party_payment(after, before)

        activity = LedgerActivity.for_update(before, after)
        if activity is not None:
            await self._log_activity(activity)
        return result

    async def void_entry(self, entry_id: str) -> Optional[LedgerMutationResult]:
        entry = await self.ledger.get(entry_id)
        if entry is None:
            return None

        result = LedgerMutationResult(entry=entry)
        if entry.voided:
            return result

        side, counterparty_name = entry.side, entry.counterparty_name
        entry.voided = True
        entry.touch()
        await self.ledger.save(entry)

        if side is not None:
            await self.track_allocation(result, self.engine.revert(entry.id, counterparty_name, side))
        await self._sync_party_payment(entry)
        await self._log_activity(LedgerActivity.for_entry(ActivityType.VOIDED, entry))
        return result

    async def delete_entry(self, entry_id: str) -> Optional[LedgerMutationResult]:
        entry = await self.ledger.get(entry_id)
        if entry is None:
            return None

        result = LedgerMutationResult(entry=entry)
        if entry.side is not None:
            await self.track_allocation(
                result,
                self.engine.revert(entry.id, entry.counterparty_name, entry.side)
            )

        await self.ledger.delete(entry.id)
        logger.info("Deleted ledger entry %s", entry.id)

        if entry.counterparty_kind == CounterpartyKind.PARTY:
            await self._remove_party_payment(entry.id)
        await self._log_activity(LedgerActivity.for_entry(ActivityType.DELETED, entry))
        return result

    async def redistribute_entry(self, entry_id: str) -> Optional[LedgerMutationResult]:
        """Re-run allocation for one entry on demand."""
        entry = await self.ledger.get(entry_id)
        if entry is None:
            return None
        result = LedgerMutationResult(entry=entry)
        await self.track_allocation(result, self.engine.redistribute(entry.id))
        return result

    async def rebuild_party_payments(self, party_name: str) -> List[PartyPayment]:
        """Recreate the party-payment projection of one party from the ledger."""
        for payment in await self.party_payments.list_for_party(party_name):
            await self.party_payments.remove_for_entry(payment.ledger_entry_id)

        entries = await self.ledger.list_for_counterparty(party_name, AccountSide.REVENUE)
        return [await self.party_payments.upsert_from_entry(entry) for entry in entries]

    # ===== ALLOCATION HELPERS =====

    async def _reallocate(
        self,
        before: LedgerEntry,
        after: LedgerEntry,
        result: LedgerMutationResult
    ) -> None:
        old_side, old_name = before.side, before.counterparty_name
        new_side, new_name = after.side, after.counterparty_name

        if old_side is None and new_side is None:
            return

        if old_side is None:
            await self._reconcile_quietly(new_name, new_side)
            await self.track_allocation(result, self.engine.distribute(
                after.id, after.amount_cents, new_side, new_name, after.date
            ))
        elif new_side is None:
            await self.track_allocation(result, self.engine.revert(after.id, old_name, old_side))
        elif old_name != new_name:
            await self.track_allocation(result, self.engine.revert(after.id, old_name, old_side))
            await self.track_allocation(result, self.engine.distribute(
                after.id, after.amount_cents, new_side, new_name, after.date
            ))
        elif before.amount_cents != after.amount_cents or before.date != after.date:
            await self.track_allocation(result, self.engine.redistribute(after.id, after.date))

    async def track_allocation(
        self,
        result,
        operation: Awaitable[AllocationReport],
        ledger_entry_id: Optional[str] = None
    ) -> None:
        """
        Await an engine call and fold its report into ``result``.

        ``result`` is any mutation result with ``add`` and ``warnings``.
        Exceptions become ALLOCATION_ERROR warnings, and reports with failed
        order writes are journalled for the retry job.
        """
        try:
            report = await operation
        except Exception as exc:
            entry_id = ledger_entry_id
            if entry_id is None and getattr(result, "entry", None) is not None:
                entry_id = result.entry.id
            logger.exception("Allocation failed for ledger entry %s", entry_id)
            result.warnings.append(AllocationWarning(
                kind=WarningKind.ALLOCATION_ERROR,
                message=f"Allocation did not complete: {exc}",
                ledger_entry_id=entry_id,
            ))
            return

        result.add(report)
        if report.has_failures:
            await self._journal(report)

    async def _journal(self, report: AllocationReport) -> None:
        try:
            await self.runs.save(AllocationRun.from_report(report))
        except Exception:
            logger.exception(
                "Could not journal failed allocation for ledger entry %s",
                report.ledger_entry_id
            )

    async def _reconcile_quietly(self, counterparty_name: str, side: AccountSide) -> None:
        """Orphan cleanup; repairs are logged, not surfaced."""
        try:
            await self.reconciliation.reconcile_counterparty(counterparty_name, side)
        except Exception:
            logger.exception("Reconciliation failed for %s (%s)", counterparty_name, side.value)

    async def _sync_party_payment(self, entry: LedgerEntry, before: Optional[LedgerEntry] = None) -> None:
        is_party_income = entry.counterparty_kind == CounterpartyKind.PARTY and not entry.voided
        was_party_income = (
            entry.counterparty_kind == CounterpartyKind.PARTY
            or (before is not None and before.counterparty_kind == CounterpartyKind.PARTY)
        )
        if is_party_income:
            try:
                await self.party_payments.upsert_from_entry(entry)
            except Exception:
                logger.exception("Could not update party payment for ledger entry %s", entry.id)
        elif was_party_income:
            await self._remove_party_payment(entry.id)

    async def _remove_party_payment(self, ledger_entry_id: str) -> None:
        try:
            await self.party_payments.remove_for_entry(ledger_entry_id)
        except Exception:
            logger.exception("Could not remove party payment for ledger entry %s", ledger_entry_id)

    async def _log_activity(self, activity: LedgerActivity) -> None:
        # The mutation already succeeded; a lost audit line is only logged
        try:
            await self.activities.log(activity)
        except Exception:
            logger.exception(
                "Failed to log %s activity for ledger entry %s",
                activity.activity_type.value, activity.ledger_entry_id
            )
