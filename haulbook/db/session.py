from haulbook.db.mongo import (
    connect_to_mongo,
    disconnect_from_mongo,
    LEDGER_COLLECTION,
    ORDERS_COLLECTION,
    PARTY_PAYMENTS_COLLECTION,
    ACTIVITIES_COLLECTION,
    ALLOCATION_RUNS_COLLECTION,
)
from haulbook.db.store import MongoDocumentStore


async def close_mongo_connection():
    await disconnect_from_mongo()


def stores_for(db) -> dict:
    """Build one MongoDocumentStore per collection the services need."""
    return {
        "ledger": MongoDocumentStore(db[LEDGER_COLLECTION]),
        "orders": MongoDocumentStore(db[ORDERS_COLLECTION]),
        "party_payments": MongoDocumentStore(db[PARTY_PAYMENTS_COLLECTION]),
        "activities": MongoDocumentStore(db[ACTIVITIES_COLLECTION]),
        "allocation_runs": MongoDocumentStore(db[ALLOCATION_RUNS_COLLECTION]),
    }


__all__ = [
    "connect_to_mongo",
    "close_mongo_connection",
    "stores_for",
]
