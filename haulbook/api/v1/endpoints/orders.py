from typing import List, Optional
from fastapi import APIRouter, HTTPException, Depends, status
from haulbook.api.deps import get_order_service
from haulbook.models.order import AccountSide
from haulbook.schemas.order import (
    OrderCreate,
    OrderUpdate,
    OrderResponse,
    OrderMutationResponse,
    PaymentCreate,
    PaymentUpdate,
)
from haulbook.services.order_service import OrderService
from haulbook.utils.payment_validation import PaymentValidationError

router = APIRouter()

@router.get("/", response_model=List[OrderResponse])
async def list_orders(
    supplier: Optional[str] = None,
    party_name: Optional[str] = None,
    service: OrderService = Depends(get_order_service)
):
    """List orders, oldest first"""
    return await service.list_orders(supplier=supplier, party_name=party_name)

@router.post("/", response_model=OrderResponse)
async def create_order(
    order_in: OrderCreate,
    service: OrderService = Depends(get_order_service)
):
    try:
        return await service.create_order(order_in)
    except PaymentValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    service: OrderService = Depends(get_order_service)
):
    order = await service.get_order(order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order

@router.patch("/{order_id}", response_model=OrderMutationResponse)
async def update_order(
    order_id: str,
    order_in: OrderUpdate,
    service: OrderService = Depends(get_order_service)
):
    """Update an order; changed totals re-split the ledger entries paying it"""
    try:
        result = await service.update_order(order_id, order_in)
    except PaymentValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not result:
        raise HTTPException(status_code=404, detail="Order not found")
    return result

@router.delete("/{order_id}", response_model=OrderMutationResponse)
async def delete_order(
    order_id: str,
    service: OrderService = Depends(get_order_service)
):
    result = await service.delete_order(order_id)
    if not result:
        raise HTTPException(status_code=404, detail="Order not found")
    return result

@router.post("/{order_id}/payments/{side}", response_model=OrderMutationResponse)
async def add_payment(
    order_id: str,
    side: AccountSide,
    payment_in: PaymentCreate,
    service: OrderService = Depends(get_order_service)
):
    """Record a payment directly on the order"""
    try:
        result = await service.add_payment(
            order_id,
            side,
            payment_in.amount_cents,
            note=payment_in.note,
            record_in_ledger=payment_in.record_in_ledger
        )
    except PaymentValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not result:
        raise HTTPException(status_code=404, detail="Order not found")
    return result

@router.patch("/{order_id}/payments/{side}/{payment_id}", response_model=OrderMutationResponse)
async def update_payment(
    order_id: str,
    side: AccountSide,
    payment_id: str,
    payment_in: PaymentUpdate,
    service: OrderService = Depends(get_order_service)
):
    try:
        result = await service.update_payment(order_id, side, payment_id, payment_in)
    except PaymentValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not result:
        raise HTTPException(status_code=404, detail="Order or payment not found")
    return result

@router.delete("/{order_id}/payments/{side}/{payment_id}", response_model=OrderMutationResponse)
async def remove_payment(
    order_id: str,
    side: AccountSide,
    payment_id: str,
    service: OrderService = Depends(get_order_service)
):
    result = await service.remove_payment(order_id, side, payment_id)
    if not result:
        raise HTTPException(status_code=404, detail="Order or payment not found")
    return result
