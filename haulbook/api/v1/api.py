from fastapi import APIRouter
from haulbook.api.v1.endpoints import ledger, orders, reconciliation, parties

api_router = APIRouter()

api_router.include_router(ledger.router, prefix="/ledger", tags=["ledger"])
api_router.include_router(orders.router, prefix="/orders", tags=["orders"])
api_router.include_router(reconciliation.router, prefix="/reconciliation", tags=["reconciliation"])
api_router.include_router(parties.router, prefix="/parties", tags=["parties"])
