import copy
from datetime import date, datetime, timezone

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from haulbook.db.store import StoreChange
from haulbook.main import app
from haulbook.api.deps import get_stores
from haulbook.models.order import Order
from haulbook.repositories.ledger_repo import LedgerRepository
from haulbook.repositories.order_repo import OrderRepository
from haulbook.repositories.allocation_run_repo import AllocationRunRepository
from haulbook.repositories.party_payment_repo import PartyPaymentRepository
from haulbook.services.wiring import build_services

# Gap under which an order counts as paid (100.00)
TOLERANCE_CENTS = 10000


class InMemoryDocumentStore:
    """DocumentStore double: equality filters, copies on the way in and out."""

    def __init__(self):
        self.documents = {}
        self.failing_ids = set()
        self.put_calls = []
        self.subscribers = []

    async def list(self, filter=None):
        filter = filter or {}
        return [
            copy.deepcopy(doc)
            for doc in self.documents.values()
            if all(doc.get(key) == value for key, value in filter.items())
        ]

    async def get(self, id):
        doc = self.documents.get(id)
        return copy.deepcopy(doc) if doc is not None else None

    async def put(self, document):
        self.put_calls.append(document["_id"])
        if document["_id"] in self.failing_ids:
            raise ConnectionError(f"write to {document['_id']} failed")
        self.documents[document["_id"]] = copy.deepcopy(document)

    async def delete(self, id):
        self.documents.pop(id, None)

    def subscribe(self, filter, callback):
        self.subscribers.append(callback)
        return lambda: self.subscribers.remove(callback)

    async def push(self, change: StoreChange):
        """Simulate a change made by another client."""
        if change.kind == "delete":
            self.documents.pop(change.id, None)
        elif change.document is not None:
            self.documents[change.id] = copy.deepcopy(change.document)
        for callback in list(self.subscribers):
            await callback(change)


def make_stores():
    return {
        "ledger": InMemoryDocumentStore(),
        "orders": InMemoryDocumentStore(),
        "party_payments": InMemoryDocumentStore(),
        "activities": InMemoryDocumentStore(),
        "allocation_runs": InMemoryDocumentStore(),
    }


@pytest.fixture
def stores():
    return make_stores()


@pytest.fixture
def services(stores):
    return build_services(stores, tolerance_cents=TOLERANCE_CENTS)


@pytest.fixture
def engine(services):
    return services.engine


@pytest.fixture
def ledger_service(services):
    return services.ledger


@pytest.fixture
def order_service(services):
    return services.orders


@pytest.fixture
def reconciliation(services):
    return services.reconciliation


@pytest.fixture
def order_repo(stores):
    return OrderRepository(stores["orders"], TOLERANCE_CENTS)


@pytest.fixture
def ledger_repo(stores):
    return LedgerRepository(stores["ledger"])


@pytest.fixture
def run_repo(stores):
    return AllocationRunRepository(stores["allocation_runs"])


@pytest.fixture
def party_payment_repo(stores):
    return PartyPaymentRepository(stores["party_payments"])


@pytest_asyncio.fixture
async def make_order(order_repo):
    """Persist an order; ``day`` orders them oldest-first by date."""
    async def _make(
        day=1,
        supplier="Acme Quarry",
        party_name="Riverside Builders",
        original_total_cents=0,
        total_cents=0,
        **fields
    ):
        order = Order(
            date=date(2024, 1, day),
            supplier=supplier,
            party_name=party_name,
            original_total_cents=original_total_cents,
            total_cents=total_cents,
            **fields
        )
        return await order_repo.save(order)
    return _make


@pytest.fixture
def entry_date():
    return datetime(2024, 2, 1, tzinfo=timezone.utc)


@pytest.fixture
def client(stores):
    """TestClient wired to in-memory stores; startup hooks (Mongo) are not run."""
    app.dependency_overrides[get_stores] = lambda: stores
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
