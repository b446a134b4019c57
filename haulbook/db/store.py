"""
Keyed document store used by the repositories.

The allocation engine never talks to MongoDB directly. Repositories are
handed a DocumentStore, which keeps the engine testable against an
in-memory double and lets the backing database change without touching
the allocation logic.

Documents are plain dicts keyed by a string ``_id``.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from motor.motor_asyncio import AsyncIOMotorCollection

logger = logging.getLogger(__name__)

Document = Dict[str, Any]


@dataclass
class StoreChange:
    """A single remote change pushed to subscribers."""
    kind: str  # "put" | "delete"
    id: str
    document: Optional[Document] = field(default=None)


ChangeCallback = Callable[[StoreChange], Awaitable[None]]
Unsubscribe = Callable[[], None]


class DocumentStore(Protocol):
    async def list(self, filter: Optional[Document] = None) -> List[Document]:
        ...

    async def get(self, id: str) -> Optional[Document]:
        ...

    async def put(self, document: Document) -> None:
        ...

    async def delete(self, id: str) -> None:
        ...

    def subscribe(self, filter: Optional[Document], callback: ChangeCallback) -> Unsubscribe:
        ...


class MongoDocumentStore:
    """DocumentStore over a single motor collection."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def list(self, filter: Optional[Document] = None) -> List[Document]:
        return await self.collection.find(filter or {}).to_list(None)

    async def get(self, id: str) -> Optional[Document]:
        return await self.collection.find_one({"_id": id})

    async def put(self, document: Document) -> None:
        if not document.get("_id"):
            raise ValueError("Document must carry an _id")
        await self.collection.replace_one(
            {"_id": document["_id"]},
            document,
            upsert=True
        )

    async def delete(self, id: str) -> None:
        await self.collection.delete_one({"_id": id})

    def subscribe(self, filter: Optional[Document], callback: ChangeCallback) -> Unsubscribe:
        """
        Watch the collection through a change stream.

        Deletes carry no document, so they are always delivered and the
        filter only narrows inserts, replaces and updates.
        """
        pipeline = []
        if filter:
            pipeline.append({
                "$match": {
                    "$or": [
                        {"operationType": "delete"},
                        {f"fullDocument.{key}": value for key, value in filter.items()}
                    ]
                }
            })

        task = asyncio.ensure_future(self._watch(pipeline, callback))
        task.add_done_callback(self._watch_done)
        return task.cancel

    def _watch_done(self, task: "asyncio.Future") -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.exception("Change stream on %s stopped", self.collection.name, exc_info=error)

    async def _watch(self, pipeline: List[Document], callback: ChangeCallback) -> None:
        async with self.collection.watch(pipeline, full_document="updateLookup") as stream:
            async for event in stream:
                change = _to_store_change(event)
                if change is None:
                    continue
                try:
                    await callback(change)
                except Exception:
                    logger.exception("Change subscriber failed for %s", change.id)


def _to_store_change(event: Document) -> Optional[StoreChange]:
    operation = event.get("operationType")
    doc_id = event.get("documentKey", {}).get("_id")
    if doc_id is None:
        return None
    if operation == "delete":
        return StoreChange(kind="delete", id=str(doc_id))
    if operation in ("insert", "replace", "update"):
        return StoreChange(kind="put", id=str(doc_id), document=event.get("fullDocument"))
    return None
