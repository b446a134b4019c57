"""
Allocation results, warnings and the run journal.

Warnings are non-blocking: the ledger entry that triggered an allocation
is never rejected or rolled back because of one.
"""

from typing import Optional, List, Dict
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from haulbook.models.base import MongoModel, _utcnow
from haulbook.models.order import AccountSide


class WarningKind(str, Enum):
    PARTIAL_DISTRIBUTION = "partial_distribution"              # Amount exceeded outstanding orders
    NO_ELIGIBLE_ORDERS = "no_eligible_orders"                  # Counterparty has no orders at all
    UNDERFUNDED_REDISTRIBUTION = "underfunded_redistribution"  # Amount below preserved allocations
    ORDER_WRITE_FAILURE = "order_write_failure"                # One order write failed
    ORPHAN_PAYMENT = "orphan_payment"                          # Found and removed by reconciliation
    ALLOCATION_ERROR = "allocation_error"                      # Unexpected failure, ledger kept


class AllocationOperation(str, Enum):
    DISTRIBUTE = "distribute"
    REDISTRIBUTE = "redistribute"
    REVERT = "revert"


class AllocationWarning(BaseModel):
    kind: WarningKind
    message: str
    ledger_entry_id: Optional[str] = None
    counterparty_name: Optional[str] = None
    amount_cents: Optional[int] = None
    placed_cents: Optional[int] = None
    order_id: Optional[str] = None


class AllocationReport(BaseModel):
    """Outcome of one distribute / redistribute / revert call."""
    operation: AllocationOperation
    ledger_entry_id: str
    counterparty_name: Optional[str] = None
    side: Optional[AccountSide] = None
    requested_cents: int = 0
    placed_cents: int = 0
    # order id -> cents tagged with this entry after the run
    allocations: Dict[str, int] = {}
    applied_order_ids: List[str] = []
    failed_order_ids: List[str] = []
    warnings: List[AllocationWarning] = []

    @property
    def unplaced_cents(self) -> int:
        return max(0, self.requested_cents - self.placed_cents)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed_order_ids)

    def warn(self, kind: WarningKind, message: str, **extra) -> AllocationWarning:
        warning = AllocationWarning(
            kind=kind,
            message=message,
            ledger_entry_id=self.ledger_entry_id,
            counterparty_name=self.counterparty_name,
            **extra
        )
        self.warnings.append(warning)
        return warning


class AllocationRun(MongoModel):
    """
    Journal of an engine call that left failed order writes behind.

    The reconciliation service retries unresolved runs.
    """
    operation: AllocationOperation
    ledger_entry_id: str
    counterparty_name: Optional[str] = None
    side: Optional[AccountSide] = None
    applied_order_ids: List[str] = []
    failed_order_ids: List[str] = []
    resolved: bool = False
    resolved_at: Optional[datetime] = None
    attempts: int = 1

    @classmethod
    def from_report(cls, report: AllocationReport) -> "AllocationRun":
        return cls(
            operation=report.operation,
            ledger_entry_id=report.ledger_entry_id,
            counterparty_name=report.counterparty_name,
            side=report.side,
            applied_order_ids=report.applied_order_ids,
            failed_order_ids=report.failed_order_ids,
        )

    def mark_resolved(self) -> None:
        self.resolved = True
        self.resolved_at = _utcnow()
        self.touch()


class ReconciliationReport(BaseModel):
    counterparty_name: str
    side: AccountSide
    orphans_removed: int = 0
    orders_updated: List[str] = []
    failed_order_ids: List[str] = []
    warnings: List[AllocationWarning] = []


class EntryDistributionStatus(BaseModel):
    """How much of a ledger entry is tagged on the counterparty's orders."""
    ledger_entry_id: str
    amount_cents: int
    tagged_cents: int
    order_ids: List[str] = Field(default_factory=list)

    @property
    def undistributed_cents(self) -> int:
        return self.amount_cents - self.tagged_cents

    @property
    def is_consistent(self) -> bool:
        return self.tagged_cents <= self.amount_cents
