"""
Shared fixtures.

Provides:
- store: a connected MongoStore backed by an in-process mongomock client
- ledger: InventoryLedger over that store (conditional stock decrement)
- client: TestClient for an app wired to the same store
- make_product: inserts a product with the given stock and returns its id
"""
import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import MongoStore
from ledger import InventoryLedger
from main import create_app
from schemas import ImportCreate


@pytest.fixture
def store():
    s = MongoStore(database_name="exportHubTest", client=mongomock.MongoClient())
    s.connect()
    s.ensure_indexes()
    yield s
    s.close()


@pytest.fixture(params=[True, False], ids=["guarded", "sequential"])
def ledger(store, request):
    return InventoryLedger(store, stock_guard=request.param)


@pytest.fixture
def settings():
    return Settings(APP_ENV="test", LOG_LEVEL="WARNING")


@pytest.fixture
def client(store, settings):
    app = create_app(settings, store=store)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_product(store):
    def _make(quantity=10, name="Basmati Rice", email="exporter@example.com", **extra):
        doc = {
            "productName": name,
            "productImage": "https://example.com/rice.jpg",
            "price": 12.5,
            "originCountry": "Pakistan",
            "rating": 4.5,
            "availableQuantity": quantity,
            "userEmail": email,
            "userName": "Exporter",
        }
        doc.update(extra)
        return store.create_document("products", doc)
    return _make


def import_request(product_id, quantity, email="a@example.com", **extra):
    body = {
        "productId": product_id,
        "productName": "Basmati Rice",
        "productImage": "https://example.com/rice.jpg",
        "price": 12.5,
        "rating": 4.5,
        "originCountry": "Pakistan",
        "importedQuantity": quantity,
        "userEmail": email,
    }
    body.update(extra)
    return ImportCreate(**body)
