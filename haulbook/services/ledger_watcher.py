"""
Reverts allocations of ledger entries deleted or voided by another client.

The API already reverts entries it deletes itself; a second revert finds
nothing tagged and writes nothing.
"""

import logging
from typing import Optional

from haulbook.db.store import DocumentStore, StoreChange, Unsubscribe
from haulbook.models.ledger import LedgerEntry
from haulbook.services.allocation import AllocationEngine

logger = logging.getLogger(__name__)


class LedgerWatcher:

    def __init__(self, store: DocumentStore, engine: AllocationEngine):
        self.store = store
        self.engine = engine
        self._unsubscribe: Optional[Unsubscribe] = None

    @property
    def running(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(None, self.handle_change)
            logger.info("Watching ledger for remote deletes")

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def handle_change(self, change: StoreChange) -> None:
        if change.kind == "delete":
            logger.info("Ledger entry %s deleted remotely; reverting", change.id)
            await self.engine.revert(change.id)
            return

        if change.kind == "put" and change.document:
            entry = LedgerEntry.from_document(change.document)
            if entry.voided:
                await self.engine.revert(entry.id, entry.counterparty_name, entry.side)
