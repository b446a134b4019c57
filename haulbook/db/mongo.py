import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from haulbook.core.config import settings

logger = logging.getLogger(__name__)

LEDGER_COLLECTION = "ledger_entries"
ORDERS_COLLECTION = "orders"
PARTY_PAYMENTS_COLLECTION = "party_payments"
ACTIVITIES_COLLECTION = "ledger_activities"
ALLOCATION_RUNS_COLLECTION = "allocation_runs"


class MongoDatabase:
    """MongoDB connection manager."""

    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

mongodb = MongoDatabase()

async def connect_to_mongo():
    """Connect to MongoDB."""
    mongodb.client = AsyncIOMotorClient(settings.MONGODB_URL)
    mongodb.db = mongodb.client[settings.DATABASE_NAME]

    # Create indexes
    await create_indexes()
    logger.info("Connected to MongoDB: %s", settings.DATABASE_NAME)

async def disconnect_from_mongo():
    """Disconnect from MongoDB."""
    if mongodb.client is not None:
        mongodb.client.close()
    logger.info("Disconnected from MongoDB")

async def create_indexes():
    """Create database indexes."""
    # Ledger indexes
    await mongodb.db[LEDGER_COLLECTION].create_index([("type", 1), ("supplier", 1)])
    await mongodb.db[LEDGER_COLLECTION].create_index([("type", 1), ("party_name", 1)])
    await mongodb.db[LEDGER_COLLECTION].create_index("date")

    # Order indexes
    await mongodb.db[ORDERS_COLLECTION].create_index("supplier")
    await mongodb.db[ORDERS_COLLECTION].create_index("party_name")
    await mongodb.db[ORDERS_COLLECTION].create_index([("date", 1), ("created_at", 1)])

    # Projection / journal indexes
    await mongodb.db[PARTY_PAYMENTS_COLLECTION].create_index("party_name")
    await mongodb.db[ACTIVITIES_COLLECTION].create_index("ledger_entry_id")
    await mongodb.db[ALLOCATION_RUNS_COLLECTION].create_index("resolved")

def get_db() -> AsyncIOMotorDatabase:
    """Get database instance."""
    return mongodb.db
