from typing import List, Optional
from fastapi import APIRouter, HTTPException, Depends, status
from haulbook.api.deps import get_ledger_service
from haulbook.models.ledger import LedgerType
from haulbook.schemas.ledger import (
    LedgerEntryCreate,
    LedgerEntryUpdate,
    LedgerEntryResponse,
    LedgerMutationResponse,
    BalanceResponse,
    LedgerActivityResponse,
)
from haulbook.services.ledger_service import LedgerService
from haulbook.utils.payment_validation import PaymentValidationError

router = APIRouter()

@router.get("/", response_model=List[LedgerEntryResponse])
async def list_entries(
    type: Optional[LedgerType] = None,
    supplier: Optional[str] = None,
    party_name: Optional[str] = None,
    include_voided: bool = False,
    service: LedgerService = Depends(get_ledger_service)
):
    """List ledger entries, newest first"""
    return await service.list_entries(
        type=type,
        supplier=supplier,
        party_name=party_name,
        include_voided=include_voided
    )

@router.post("/", response_model=LedgerMutationResponse)
async def create_entry(
    entry_in: LedgerEntryCreate,
    service: LedgerService = Depends(get_ledger_service)
):
    """Record a ledger entry and distribute it over the counterparty's orders"""
    try:
        return await service.create_entry(entry_in)
    except PaymentValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.get("/balance", response_model=BalanceResponse)
async def get_balance(service: LedgerService = Depends(get_ledger_service)):
    """Income minus expenses over all non-voided entries"""
    return BalanceResponse(balance_cents=await service.get_balance())

@router.get("/activities", response_model=List[LedgerActivityResponse])
async def list_activities(
    ledger_entry_id: Optional[str] = None,
    service: LedgerService = Depends(get_ledger_service)
):
    """Audit trail of ledger changes, newest first"""
    return await service.list_activities(ledger_entry_id)

@router.get("/{entry_id}", response_model=LedgerEntryResponse)
async def get_entry(
    entry_id: str,
    service: LedgerService = Depends(get_ledger_service)
):
    entry = await service.get_entry(entry_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Ledger entry not found")
    return entry

@router.patch("/{entry_id}", response_model=LedgerMutationResponse)
async def update_entry(
    entry_id: str,
    entry_in: LedgerEntryUpdate,
    service: LedgerService = Depends(get_ledger_service)
):
    """Edit an entry; allocations follow the change"""
    try:
        result = await service.update_entry(entry_id, entry_in)
    except PaymentValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not result:
        raise HTTPException(status_code=404, detail="Ledger entry not found")
    return result

@router.delete("/{entry_id}", response_model=LedgerMutationResponse)
async def delete_entry(
    entry_id: str,
    service: LedgerService = Depends(get_ledger_service)
):
    """Delete an entry and remove its payments from every order"""
    result = await service.delete_entry(entry_id)
    if not result:
        raise HTTPException(status_code=404, detail="Ledger entry not found")
    return result

@router.post("/{entry_id}/void", response_model=LedgerMutationResponse)
async def void_entry(
    entry_id: str,
    service: LedgerService = Depends(get_ledger_service)
):
    """Soft-delete an entry; its payments are removed from every order"""
    result = await service.void_entry(entry_id)
    if not result:
        raise HTTPException(status_code=404, detail="Ledger entry not found")
    return result

@router.post("/{entry_id}/redistribute", response_model=LedgerMutationResponse)
async def redistribute_entry(
    entry_id: str,
    service: LedgerService = Depends(get_ledger_service)
):
    """Re-split an entry over its counterparty's orders"""
    result = await service.redistribute_entry(entry_id)
    if not result:
        raise HTTPException(status_code=404, detail="Ledger entry not found")
    return result
