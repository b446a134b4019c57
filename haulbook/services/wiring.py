from dataclasses import dataclass
from typing import Dict, Optional

from haulbook.core.config import settings
from haulbook.db.store import DocumentStore
from haulbook.repositories.activity_repo import ActivityRepository
from haulbook.repositories.allocation_run_repo import AllocationRunRepository
from haulbook.repositories.ledger_repo import LedgerRepository
from haulbook.repositories.order_repo import OrderRepository
from haulbook.repositories.party_payment_repo import PartyPaymentRepository
from haulbook.services.allocation import AllocationEngine
from haulbook.services.ledger_service import LedgerService
from haulbook.services.order_service import OrderService
from haulbook.services.reconciliation_service import ReconciliationService


@dataclass
class Services:
    engine: AllocationEngine
    ledger: LedgerService
    orders: OrderService
    reconciliation: ReconciliationService


def build_services(stores: Dict[str, DocumentStore], tolerance_cents: Optional[int] = None) -> Services:
    """Wire repositories and services over one store per collection."""
    if tolerance_cents is None:
        tolerance_cents = settings.PAYMENT_TOLERANCE_CENTS

    order_repo = OrderRepository(stores["orders"], tolerance_cents)
    ledger_repo = LedgerRepository(stores["ledger"])
    run_repo = AllocationRunRepository(stores["allocation_runs"])

    engine = AllocationEngine(order_repo, ledger_repo, tolerance_cents)
    reconciliation = ReconciliationService(order_repo, ledger_repo, engine, run_repo)
    ledger = LedgerService(
        ledger_repo,
        engine,
        reconciliation,
        PartyPaymentRepository(stores["party_payments"]),
        ActivityRepository(stores["activities"]),
        run_repo,
    )
    orders = OrderService(order_repo, engine, ledger)
    return Services(engine=engine, ledger=ledger, orders=orders, reconciliation=reconciliation)
