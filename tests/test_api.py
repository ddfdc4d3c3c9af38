from bson.objectid import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from database import MongoStore
from main import SAMPLE_PRODUCTS, create_app, seed_data


def product_body(**overrides):
    body = {
        "productName": "Saffron Threads",
        "productImage": "https://example.com/saffron.jpg",
        "price": "19.99",
        "originCountry": "Iran",
        "rating": "4.7",
        "availableQuantity": "10",
        "userEmail": "exporter@example.com",
        "userName": "Exporter",
    }
    body.update(overrides)
    return body


def import_body(product_id, quantity, email="buyer@example.com", **overrides):
    body = {
        "productId": product_id,
        "productName": "Saffron Threads",
        "productImage": "https://example.com/saffron.jpg",
        "price": 19.99,
        "rating": 4.7,
        "originCountry": "Iran",
        "importedQuantity": quantity,
        "userEmail": email,
        "userName": "Buyer",
    }
    body.update(overrides)
    return body


def create_product(client, **overrides):
    r = client.post("/products", json=product_body(**overrides))
    assert r.status_code == 201
    return r.json()["data"]["id"]


def test_root_reports_connection(client):
    r = client.get("/")
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["mongoConnected"] is True


def test_health(client):
    assert client.get("/health").json() == {"status": "ok", "env": "test"}


def test_create_product_coerces_numbers(client):
    r = client.post("/products", json=product_body())
    assert r.status_code == 201
    data = r.json()["data"]
    assert data["price"] == 19.99
    assert data["rating"] == 4.7
    assert data["availableQuantity"] == 10
    assert data["userName"] == "Exporter"


def test_create_product_rejects_non_numeric(client):
    r = client.post("/products", json=product_body(price="cheap"))
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert "price" in body["fields"]

    r = client.post("/products", json=product_body(availableQuantity="NaN"))
    assert r.status_code == 400


def test_create_product_missing_field(client):
    body = product_body()
    del body["originCountry"]
    r = client.post("/products", json=body)
    assert r.status_code == 400
    assert r.json()["fields"] == ["originCountry"]


def test_get_product_errors(client):
    assert client.get("/products/not-valid").status_code == 400
    r = client.get(f"/products/{ObjectId()}")
    assert r.status_code == 404
    assert r.json() == {"success": False, "error": "Product not found"}


def test_list_products_paginates_and_searches(client):
    for i in range(12):
        create_product(client, productName=f"Olive Oil {i}", originCountry="Greece")
    create_product(client, productName="Maple Syrup", originCountry="Canada")

    r = client.get("/products", params={"page": 2, "limit": 5})
    body = r.json()
    assert len(body["data"]) == 5
    assert body["pagination"] == {"total": 13, "page": 2, "limit": 5, "totalPages": 3}

    r = client.get("/products", params={"search": "canada"})
    names = [p["productName"] for p in r.json()["data"]]
    assert names == ["Maple Syrup"]


def test_update_product(client):
    pid = create_product(client)
    r = client.put(f"/products/{pid}", json={"price": "25", "productName": "Premium Saffron"})
    assert r.status_code == 200
    assert r.json()["modifiedCount"] == 1
    data = client.get(f"/products/{pid}").json()["data"]
    assert data["price"] == 25.0
    assert data["productName"] == "Premium Saffron"
    assert data["rating"] == 4.7

    assert client.put(f"/products/{ObjectId()}", json={"price": 1}).status_code == 404


def test_import_flow_over_http(client):
    pid = create_product(client, availableQuantity=10)

    r = client.post("/imports", json=import_body(pid, "4", email="a@example.com"))
    assert r.status_code == 201
    import_id = r.json()["data"]["id"]
    assert r.json()["data"]["merged"] is False

    r = client.post("/imports", json=import_body(pid, 3, email="a@example.com"))
    assert r.status_code == 201
    assert r.json()["data"] == {"id": import_id, "importedQuantity": 7, "merged": True}
    assert client.get(f"/products/{pid}").json()["data"]["availableQuantity"] == 3

    r = client.post("/imports", json=import_body(pid, 5, email="b@example.com"))
    assert r.status_code == 400
    assert r.json()["error"] == "Insufficient quantity available"

    mine = client.get("/imports/a@example.com").json()
    assert mine["count"] == 1
    assert mine["data"][0]["importedQuantity"] == 7

    r = client.delete(f"/products/{pid}")
    assert r.status_code == 400
    assert r.json()["importCount"] == 1

    assert client.delete(f"/imports/{import_id}").status_code == 200
    assert client.get(f"/products/{pid}").json()["data"]["availableQuantity"] == 10

    assert client.delete(f"/products/{pid}").status_code == 200
    assert client.get(f"/products/{pid}").status_code == 404


def test_import_validation(client):
    pid = create_product(client)
    assert client.post("/imports", json=import_body(pid, 0)).status_code == 400
    assert client.post("/imports", json=import_body(pid, "many")).status_code == 400
    assert client.post("/imports", json=import_body("bad-id", 1)).status_code == 400
    assert client.post("/imports", json=import_body(str(ObjectId()), 1)).status_code == 404

    body = import_body(pid, 1)
    del body["userEmail"]
    assert client.post("/imports", json=body).status_code == 400


def test_remove_import_errors(client):
    assert client.delete("/imports/nope").status_code == 400
    r = client.delete(f"/imports/{ObjectId()}")
    assert r.status_code == 404
    assert r.json()["error"] == "Import not found"


def test_delete_product_errors(client):
    assert client.delete("/products/nope").status_code == 400
    assert client.delete(f"/products/{ObjectId()}").status_code == 404


def test_exports_latest_categories_stats(client):
    create_product(client, productName="Tea", category="Beverages")
    create_product(client, productName="Rug", category="Home", userEmail="other@example.com")
    create_product(client, productName="Coffee", category="Beverages")

    mine = client.get("/exports/exporter@example.com").json()
    assert mine["count"] == 2

    latest = client.get("/products/featured/latest", params={"limit": 2}).json()["data"]
    assert len(latest) == 2

    assert client.get("/categories").json()["data"] == ["Beverages", "Home"]
    assert client.get("/stats").json()["data"] == {"totalProducts": 3, "totalImports": 0}


def test_dashboard(client):
    pid = create_product(client)
    client.post("/imports", json=import_body(pid, 2, email="exporter@example.com"))

    data = client.get("/dashboard/exporter@example.com").json()["data"]
    assert data["totalExports"] == 1
    assert data["totalImports"] == 1
    assert data["totalUnitsImported"] == 2
    assert len(data["activity"]) == 7


def test_store_errors_are_not_leaked(client, store, monkeypatch):
    def boom(*args, **kwargs):
        raise OperationFailure("secret driver detail")

    products = store.products
    monkeypatch.setattr(products, "count_documents", boom)
    monkeypatch.setattr(type(store), "products", property(lambda self: products))

    r = client.get("/stats")
    assert r.status_code == 500
    assert r.json() == {"success": False, "error": "Unexpected database error"}


def test_disconnected_store_returns_503(settings, monkeypatch):
    store = MongoStore(uri="mongodb://127.0.0.1:1", timeout_ms=10)

    monkeypatch.setattr(MongoStore, "connect", lambda self: False)
    app = create_app(settings, store=store)
    with TestClient(app) as c:
        assert c.get("/").json()["mongoConnected"] is False
        r = c.get("/products")
        assert r.status_code == 503
        assert r.json()["error"] == "Database not connected"
        assert c.post("/imports", json=import_body(str(ObjectId()), 1)).status_code == 503


def test_seed_data_only_fills_empty_collection(store):
    seed_data(store)
    seed_data(store)

    assert store.products.count_documents({}) == len(SAMPLE_PRODUCTS)


def test_lost_connection_returns_503(client, store, monkeypatch):
    def unreachable(*args, **kwargs):
        raise ServerSelectionTimeoutError("No servers found yet")

    products = store.products
    monkeypatch.setattr(products, "find", unreachable)
    monkeypatch.setattr(type(store), "products", property(lambda self: products))

    r = client.get("/products")
    assert r.status_code == 503
    assert r.json() == {"success": False, "error": "Database not available"}
