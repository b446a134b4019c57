from fastapi import Depends

from haulbook.db.mongo import get_db
from haulbook.db.session import stores_for
from haulbook.services.ledger_service import LedgerService
from haulbook.services.order_service import OrderService
from haulbook.services.reconciliation_service import ReconciliationService
from haulbook.services.wiring import Services, build_services


def get_stores(db=Depends(get_db)) -> dict:
    return stores_for(db)


def get_services(stores: dict = Depends(get_stores)) -> Services:
    return build_services(stores)


def get_ledger_service(services: Services = Depends(get_services)) -> LedgerService:
    return services.ledger


def get_order_service(services: Services = Depends(get_services)) -> OrderService:
    return services.orders


def get_reconciliation_service(services: Services = Depends(get_services)) -> ReconciliationService:
    return services.reconciliation
