def _seed(client, pid, stock, price="25.00", active=True):
    r = client.put(f"/products/{pid}", json={"name": pid.title(), "price": price, "stock": stock, "is_active": active})
    assert r.status_code == 200
    return r.json()


def test_product_lookup_and_404(catalog_client):
    _seed(catalog_client, "mug", 4, price="12.50")

    r = catalog_client.get("/products/mug")
    assert r.status_code == 200
    assert r.json()["price"] == "12.50"
    assert r.json()["stock"] == 4
    assert r.headers["X-Request-ID"]

    assert catalog_client.get("/products/nope").status_code == 404


def test_reserve_is_all_or_nothing(catalog_client):
    _seed(catalog_client, "mug", 2)
    _seed(catalog_client, "tee", 1)

    r = catalog_client.post("/reserve", json={"items": [
        {"product_id": "mug", "quantity": 2},
        {"product_id": "tee", "quantity": 2},
    ]})
    assert r.status_code == 422
    assert catalog_client.get("/products/mug").json()["stock"] == 2
    assert catalog_client.get("/products/tee").json()["stock"] == 1


def test_reserve_allows_exact_sellout_then_rejects(catalog_client):
    _seed(catalog_client, "mug", 3)

    ok = catalog_client.post("/reserve", json={"items": [{"product_id": "mug", "quantity": 3}]})
    assert ok.status_code == 200
    assert ok.json()["reserved"] is True
    assert catalog_client.get("/products/mug").json()["stock"] == 0

    again = catalog_client.post("/reserve", json={"items": [{"product_id": "mug", "quantity": 1}]})
    assert again.status_code == 422


def test_reserve_aggregates_duplicate_lines(catalog_client):
    _seed(catalog_client, "mug", 3)
    r = catalog_client.post("/reserve", json={"items": [
        {"product_id": "mug", "quantity": 2},
        {"product_id": "mug", "quantity": 2},
    ]})
    assert r.status_code == 422


def test_inactive_product_cannot_be_reserved(catalog_client):
    _seed(catalog_client, "old", 10, active=False)
    r = catalog_client.post("/reserve", json={"items": [{"product_id": "old", "quantity": 1}]})
    assert r.status_code == 422


def test_release_restores_stock(catalog_client):
    _seed(catalog_client, "mug", 5)
    catalog_client.post("/reserve", json={"items": [{"product_id": "mug", "quantity": 4}]})
    r = catalog_client.post("/release", json={"items": [{"product_id": "mug", "quantity": 4}]})
    assert r.status_code == 200
    assert catalog_client.get("/products/mug").json()["stock"] == 5


def test_request_validation(catalog_client):
    assert catalog_client.post("/reserve", json={"items": []}).status_code == 422
    assert catalog_client.post("/reserve", json={"items": [{"product_id": "mug", "quantity": 0}]}).status_code == 422
