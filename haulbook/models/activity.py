from typing import Optional
from datetime import datetime
from enum import Enum

from haulbook.models.base import MongoModel
from haulbook.models.ledger import LedgerEntry, LedgerType


class ActivityType(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    VOIDED = "voided"
    DELETED = "deleted"


class LedgerActivity(MongoModel):
    """Audit trail entry for a ledger mutation, with the previous values on updates."""
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

    @classmethod
    def for_entry(cls, activity_type: ActivityType, entry: LedgerEntry) -> "LedgerActivity":
        return cls(
            ledger_entry_id=entry.id,
            activity_type=activity_type,
            type=entry.type,
            amount_cents=entry.amount_cents,
            note=entry.note,
            date=entry.date,
            supplier=entry.supplier,
            party_name=entry.party_name,
        )

    @classmethod
    def for_update(cls, before: LedgerEntry, after: LedgerEntry) -> Optional["LedgerActivity"]:
        """Activity describing the change, or None when nothing changed."""
        changed = (
            before.amount_cents != after.amount_cents
            or before.note != after.note
            or before.date != after.date
            or before.supplier != after.supplier
            or before.party_name != after.party_name
        )
        if not changed:
            return None

        activity = cls.for_entry(ActivityType.UPDATED, after)
        activity.previous_amount_cents = before.amount_cents
        activity.previous_note = before.note
        activity.previous_date = before.date
        activity.previous_supplier = before.supplier
        activity.previous_party_name = before.party_name
        return activity
