from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict

from haulbook.models.activity import ActivityType
from haulbook.models.allocation import AllocationReport, AllocationWarning
from haulbook.models.ledger import LedgerSource, LedgerType


class LedgerEntryCreate(BaseModel):
    """Request body to record a ledger entry."""
    type: LedgerType
    amount_cents: int
    date: Optional[datetime] = None  # Defaults to now
    supplier: Optional[str] = None
    party_name: Optional[str] = None
    note: Optional[str] = None
    source: LedgerSource = LedgerSource.MANUAL


class LedgerEntryUpdate(BaseModel):
    """
    Partial update. Only fields that are sent are applied; sending
    ``supplier`` or ``party_name`` as null or "" removes the counterparty.
    """
    amount_cents: Optional[int] = None
    date: Optional[datetime] = None
    supplier: Optional[str] = None
    party_name: Optional[str] = None
    note: Optional[str] = None


class LedgerEntryResponse(BaseModel):
    id: str = Field(validation_alias="_id", serialization_alias="id")
    type: LedgerType
    amount_cents: int
    date: datetime
    supplier: Optional[str] = None
    party_name: Optional[str] = None
    note: Optional[str] = None
    source: LedgerSource
    voided: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class LedgerMutationResponse(BaseModel):
    """Entry after the mutation plus the non-blocking allocation outcome."""
    entry: Optional[LedgerEntryResponse] = None
    reports: List[AllocationReport] = []
    warnings: List[AllocationWarning] = []

    model_config = ConfigDict(from_attributes=True)


class BalanceResponse(BaseModel):
    balance_cents: int


class LedgerActivityResponse(BaseModel):
    id: str = Field(validation_alias="_id", serialization_alias="id")
    ledger_entry_id: str
    activity_type: ActivityType
    type: Optional[LedgerType] = None
    amount_cents: Optional[int] = None
    previous_amount_cents: Optional[int] = None
    note: Optional[str] = None
    previous_note: Optional[str] = None
    date: Optional[datetime] = None
    previous_date: Optional[datetime] = None
    supplier: Optional[str] = None
    previous_supplier: Optional[str] = None
    party_name: Optional[str] = None
    previous_party_name: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class PartyPaymentResponse(BaseModel):
    id: str = Field(validation_alias="_id", serialization_alias="id")
    party_name: str
    amount_cents: int
    date: datetime
    note: Optional[str] = None
    ledger_entry_id: str

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class PartyPaymentsResponse(BaseModel):
    party_name: str
    total_cents: int
    payments: List[PartyPaymentResponse]
