import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict

from haulbook.models.allocation import AllocationReport, AllocationWarning
from haulbook.models.order import PaymentRecord


class OrderBase(BaseModel):
    date: dt.date
    party_name: str
    supplier: Optional[str] = None
    site_name: Optional[str] = None
    material: Optional[str] = None
    original_total_cents: int = 0
    total_cents: int = 0
    additional_cost_cents: int = 0

    model_config = {"from_attributes": True}


class OrderCreate(OrderBase):
    pass


class OrderUpdate(BaseModel):
    """Partial update of descriptive fields and totals. Payments have their own endpoints."""
    date: Optional[dt.date] = None
    party_name: Optional[str] = None
    supplier: Optional[str] = None
    site_name: Optional[str] = None
    material: Optional[str] = None
    original_total_cents: Optional[int] = None
    total_cents: Optional[int] = None
    additional_cost_cents: Optional[int] = None


class OrderResponse(OrderBase):
    id: str = Field(validation_alias="_id", serialization_alias="id")
    partial_payments: List[PaymentRecord] = []
    customer_payments: List[PaymentRecord] = []
    paid: bool
    party_paid: bool
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class PaymentCreate(BaseModel):
    amount_cents: int
    note: Optional[str] = None
    record_in_ledger: bool = True


class PaymentUpdate(BaseModel):
    amount_cents: Optional[int] = None
    date: Optional[dt.datetime] = None
    note: Optional[str] = None


class OrderMutationResponse(BaseModel):
    order: Optional[OrderResponse] = None
    reports: List[AllocationReport] = []
    warnings: List[AllocationWarning] = []

    model_config = ConfigDict(from_attributes=True)
