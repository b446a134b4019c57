from fastapi import APIRouter, Depends
from haulbook.api.deps import get_ledger_service
from haulbook.schemas.ledger import PartyPaymentsResponse
from haulbook.services.ledger_service import LedgerService

router = APIRouter()

@router.get("/{party_name}/payments", response_model=PartyPaymentsResponse)
async def list_party_payments(
    party_name: str,
    service: LedgerService = Depends(get_ledger_service)
):
    """Income received from a party, most recent first"""
    payments = await service.list_party_payments(party_name)
    return {
        "party_name": party_name,
        "total_cents": sum(p.amount_cents for p in payments),
        "payments": [p.model_dump(by_alias=True) for p in payments],
    }

@router.post("/{party_name}/payments/rebuild", response_model=PartyPaymentsResponse)
async def rebuild_party_payments(
    party_name: str,
    service: LedgerService = Depends(get_ledger_service)
):
    """Recreate the party's payment list from the ledger"""
    payments = await service.rebuild_party_payments(party_name)
    return {
        "party_name": party_name,
        "total_cents": sum(p.amount_cents for p in payments),
        "payments": [p.model_dump(by_alias=True) for p in payments],
    }
