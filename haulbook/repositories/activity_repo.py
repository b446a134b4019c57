from datetime import datetime
from typing import List, Optional

from haulbook.db.store import DocumentStore
from haulbook.models.activity import LedgerActivity


class ActivityRepository:
    """Ledger activity log."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def log(self, activity: LedgerActivity) -> LedgerActivity:
        await self.store.put(activity.to_document())
        return activity

    async def list(
        self,
        ledger_entry_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[LedgerActivity]:
        """Activities newest first, optionally for one entry or a time window."""
        query = {}
        if ledger_entry_id is not None:
            query["ledger_entry_id"] = ledger_entry_id

        docs = await self.store.list(query)
        activities = [LedgerActivity.from_document(doc) for doc in docs]
        if start is not None:
            activities = [a for a in activities if a.created_at >= start]
        if end is not None:
            activities = [a for a in activities if a.created_at <= end]

        activities.sort(key=lambda a: a.created_at, reverse=True)
        return activities
