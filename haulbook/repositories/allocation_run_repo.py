from typing import List

from haulbook.db.store import DocumentStore
from haulbook.models.allocation import AllocationRun


class AllocationRunRepository:
    """Journal of allocation calls that left failed order writes behind."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def save(self, run: AllocationRun) -> AllocationRun:
        await self.store.put(run.to_document())
        return run

    async def list_unresolved(self) -> List[AllocationRun]:
        """Oldest first, so retries replay in the order the failures happened."""
        docs = await self.store.list({"resolved": False})
        runs = [AllocationRun.from_document(doc) for doc in docs]
        runs.sort(key=lambda r: r.created_at)
        return runs
