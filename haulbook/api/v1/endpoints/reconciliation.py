from fastapi import APIRouter, Depends
from haulbook.api.deps import get_reconciliation_service
from haulbook.models.allocation import ReconciliationReport
from haulbook.models.order import AccountSide
from haulbook.schemas.reconciliation import (
    CounterpartyTotalsResponse,
    EntryTotalsResponse,
    RetryResponse,
)
from haulbook.services.reconciliation_service import ReconciliationService

router = APIRouter()

@router.post("/retry", response_model=RetryResponse)
async def retry_failed_runs(
    service: ReconciliationService = Depends(get_reconciliation_service)
):
    """Replay allocations that left failed order writes behind"""
    reports = await service.retry_failed_runs()
    return RetryResponse(
        retried=len(reports),
        resolved=sum(1 for r in reports if not r.has_failures),
        reports=reports
    )

@router.post("/{side}/{counterparty}", response_model=ReconciliationReport)
async def reconcile_counterparty(
    side: AccountSide,
    counterparty: str,
    service: ReconciliationService = Depends(get_reconciliation_service)
):
    """Remove orphan ledger payments from one side of a counterparty's orders"""
    return await service.reconcile_counterparty(counterparty, side)

@router.get("/{side}/{counterparty}/totals", response_model=CounterpartyTotalsResponse)
async def counterparty_totals(
    side: AccountSide,
    counterparty: str,
    service: ReconciliationService = Depends(get_reconciliation_service)
):
    """Compare each ledger entry with what is tagged on the orders"""
    statuses = await service.check_counterparty_totals(counterparty, side)
    return CounterpartyTotalsResponse(
        counterparty_name=counterparty,
        side=side,
        entries=[
            EntryTotalsResponse(
                ledger_entry_id=s.ledger_entry_id,
                amount_cents=s.amount_cents,
                tagged_cents=s.tagged_cents,
                undistributed_cents=s.undistributed_cents,
                order_ids=s.order_ids
            )
            for s in statuses
        ]
    )
