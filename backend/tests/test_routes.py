# Overview: Pytest coverage for the HTTP API (status codes and JSON shapes).

"""
HTTP API Tests

Exercise every blueprint through the Flask test client and check the error
mapping: ValidationError -> 400, NotFoundError -> 404, ConflictError -> 409.
"""

import pytest

from shopledger.extensions import db


@pytest.fixture
def category(client, db_session):
    resp = client.post("/api/categories", json={"name": "Beverages"})
    assert resp.status_code == 201
    return resp.get_json()


@pytest.fixture
def product(client, category):
    resp = client.post("/api/products", json={
        "name": "Coca Cola 600ml",
        "barcode": "8901030001234",
        "price_cents": 2500,
        "cost_price_cents": 2000,
        "category": "Beverages",
        "stock": 10,
        "min_stock": 5,
    })
    assert resp.status_code == 201
    return resp.get_json()


class TestSystem:
    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["details"]["products"] == 0

    def test_cors_allowed_origin(self, client, db_session):
        resp = client.get("/health", headers={"Origin": "http://localhost:5173"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

    def test_cors_other_origin(self, client, db_session):
        resp = client.get("/health", headers={"Origin": "http://evil.example"})
        assert "Access-Control-Allow-Origin" not in resp.headers


class TestCategoryRoutes:
    def test_create_and_list(self, client, category):
        resp = client.get("/api/categories")
        assert resp.status_code == 200
        assert [c["name"] for c in resp.get_json()["items"]] == ["Beverages"]

    def test_duplicate(self, client, category):
        resp = client.post("/api/categories", json={"name": "Beverages"})
        assert resp.status_code == 409

    def test_missing_name(self, client, db_session):
        resp = client.post("/api/categories", json={"description": "no name"})
        assert resp.status_code == 400
        assert "name" in resp.get_json()["error"]


class TestProductRoutes:
    def test_create_books_opening_stock(self, client, product):
        assert product["stock"] == 10
        assert product["price_cents"] == 2500

        resp = client.get(f"/api/inventory/movements?product_id={product['id']}")
        movements = resp.get_json()["items"]
        assert len(movements) == 1
        assert movements[0]["reason"] == "Opening stock"

    def test_get_and_barcode_lookup(self, client, product):
        assert client.get(f"/api/products/{product['id']}").get_json()["name"] == "Coca Cola 600ml"
        resp = client.get("/api/products/barcode/8901030001234")
        assert resp.status_code == 200
        assert resp.get_json()["id"] == product["id"]

    def test_unknown_product(self, client, db_session):
        assert client.get("/api/products/missing").status_code == 404
        assert client.get("/api/products/barcode/0000").status_code == 404

    def test_list(self, client, product):
        body = client.get("/api/products").get_json()
        assert body["count"] == 1
        assert body["items"][0]["id"] == product["id"]

    @pytest.mark.parametrize("payload", [
        {"name": "X", "price_cents": 100},
        {"name": "X", "price_cents": -1, "category": "Beverages"},
        {"name": "X", "price_cents": 1.5, "category": "Beverages"},
        {"name": "X", "price_cents": 100, "category": "Nope"},
        {"name": "X", "price_cents": 100, "category": "Beverages", "sku": "unknown"},
        {"name": "X", "price_cents": 100, "category": "Beverages", "min_stock": 10, "max_stock": 5},
    ])
    def test_create_validation(self, client, category, payload):
        resp = client.post("/api/products", json=payload)
        assert resp.status_code == 400

    def test_create_duplicate_barcode(self, client, product):
        resp = client.post("/api/products", json={
            "name": "Other", "price_cents": 100, "category": "Beverages", "barcode": "8901030001234",
        })
        assert resp.status_code == 409

    def test_update(self, client, product):
        resp = client.put(f"/api/products/{product['id']}", json={"price_cents": 2700})
        assert resp.status_code == 200
        assert resp.get_json()["price_cents"] == 2700

    def test_update_rejects_stock(self, client, product):
        resp = client.put(f"/api/products/{product['id']}", json={"stock": 99})
        assert resp.status_code == 400

    def test_update_unknown(self, client, db_session):
        assert client.put("/api/products/missing", json={"name": "x"}).status_code == 404

    def test_delete(self, client, product):
        assert client.delete(f"/api/products/{product['id']}").status_code == 200
        assert client.get(f"/api/products/{product['id']}").status_code == 404
        assert client.delete(f"/api/products/{product['id']}").status_code == 404


class TestStockRoutes:
    def test_adjust(self, client, product):
        resp = client.post(f"/api/products/{product['id']}/stock", json={"quantity": -3, "reason": "Damaged"})
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["product"]["stock"] == 7
        assert body["movement"]["type"] == "sale"
        assert body["movement"]["reason"] == "Damaged"
        assert body["movement"]["quantity"] == 3

    def test_adjust_clamps(self, client, product):
        resp = client.post(f"/api/products/{product['id']}/stock", json={"quantity": -25})
        body = resp.get_json()
        assert body["product"]["stock"] == 0
        assert body["movement"]["clamped"] is True
        assert body["movement"]["quantity"] == 25

    @pytest.mark.parametrize("payload", [{}, {"quantity": 0}, {"quantity": "abc"}, {"quantity": 1, "type": "gift"}])
    def test_adjust_validation(self, client, product, payload):
        resp = client.post(f"/api/products/{product['id']}/stock", json=payload)
        assert resp.status_code == 400

    def test_adjust_unknown_product(self, client, db_session):
        resp = client.post("/api/products/missing/stock", json={"quantity": 1})
        assert resp.status_code == 404

    def test_replay(self, client, product):
        client.post(f"/api/products/{product['id']}/stock", json={"quantity": 5})
        body = client.get(f"/api/inventory/{product['id']}/replay").get_json()
        assert body["replayed_stock"] == 15
        assert body["consistent"] is True

    def test_replay_unknown(self, client, db_session):
        assert client.get("/api/inventory/missing/replay").status_code == 404

    def test_movements_limit_validation(self, client, db_session):
        assert client.get("/api/inventory/movements?limit=0").status_code == 400


class TestTransactionRoutes:
    def test_checkout(self, client, product):
        resp = client.post("/api/transactions", json={
            "items": [{"product_id": product["id"], "quantity": 2}],
            "payment_method": "upi",
            "discount_cents": 500,
        })
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["transaction_number"] == "TXN0001"
        assert body["total_amount_cents"] == 4500
        assert body["items"][0]["name"] == "Coca Cola 600ml"

        assert client.get(f"/api/products/{product['id']}").get_json()["stock"] == 8
        assert client.get(f"/api/transactions/{body['id']}").get_json()["id"] == body["id"]

    def test_oversell_conflict(self, client, product):
        resp = client.post("/api/transactions", json={
            "items": [{"product_id": product["id"], "quantity": 11}],
            "payment_method": "cash",
        })
        assert resp.status_code == 409
        body = resp.get_json()
        assert body["details"]["items"][0]["on_hand"] == 10

        db.session.expire_all()
        assert client.get(f"/api/products/{product['id']}").get_json()["stock"] == 10
        assert client.get("/api/transactions").get_json()["count"] == 0

    def test_unknown_product(self, client, db_session):
        resp = client.post("/api/transactions", json={
            "items": [{"product_id": "missing", "quantity": 1}],
            "payment_method": "cash",
        })
        assert resp.status_code == 404

    @pytest.mark.parametrize("payload", [
        {"items": [], "payment_method": "cash"},
        {"items": [{"product_id": "x", "quantity": 0}], "payment_method": "cash"},
        {"items": [{"product_id": "x", "quantity": 1}], "payment_method": "cheque"},
        {"items": [{"product_id": "x", "quantity": 1}], "payment_method": "cash", "discount_cents": -5},
    ])
    def test_validation(self, client, db_session, payload):
        assert client.post("/api/transactions", json=payload).status_code == 400

    def test_list_and_range(self, client, product):
        for occurred_at in ("2025-01-01T10:00:00Z", "2025-01-05T10:00:00Z"):
            resp = client.post("/api/transactions", json={
                "items": [{"product_id": product["id"], "quantity": 1}],
                "payment_method": "cash",
                "occurred_at": occurred_at,
            })
            assert resp.status_code == 201

        newest_first = client.get("/api/transactions").get_json()["items"]
        assert [t["created_at"] for t in newest_first] == ["2025-01-05T10:00:00Z", "2025-01-01T10:00:00Z"]

        ranged = client.get("/api/transactions?start=2025-01-01T00:00:00Z&end=2025-01-02T00:00:00Z").get_json()
        assert [t["transaction_number"] for t in ranged["items"]] == ["TXN0001"]

    def test_range_validation(self, client, db_session):
        assert client.get("/api/transactions?start=yesterday").status_code == 400
        assert client.get("/api/transactions?end=2025-01-02T00:00:00Z").status_code == 400
        assert client.get(
            "/api/transactions?start=2025-01-03T00:00:00Z&end=2025-01-02T00:00:00Z"
        ).status_code == 400

    def test_unknown_transaction(self, client, db_session):
        assert client.get("/api/transactions/missing").status_code == 404


class TestAnalyticsRoutes:
    def test_sales_analytics(self, client, utc_shop, product):
        client.post("/api/transactions", json={
            "items": [{"product_id": product["id"], "quantity": 2}],
            "payment_method": "cash",
        })
        body = client.get("/api/analytics/daily").get_json()
        assert body["period"] == "daily"
        assert body["items_sold"] == 2
        assert len(body["sales_trend"]) == 7

    def test_unknown_period(self, client, utc_shop):
        assert client.get("/api/analytics/yearly").status_code == 400

    def test_inventory_alerts(self, client, utc_shop, product):
        client.post(f"/api/products/{product['id']}/stock", json={"quantity": -10})
        alerts = client.get("/api/inventory-alerts").get_json()
        assert [a["type"] for a in alerts] == ["out_of_stock"]

    def test_reports(self, client, utc_shop, product):
        client.post("/api/transactions", json={
            "items": [{"product_id": product["id"], "quantity": 1}],
            "payment_method": "card",
        })
        summary = client.get("/api/reports/summary").get_json()
        assert summary["total_transactions"] == 1
        assert summary["total_sales_cents"] == 2500

        assert client.get("/api/reports/products").get_json()["count"] == 1
        assert client.get("/api/reports/categories").get_json()["items"][0]["category"] == "Beverages"
        assert client.get("/api/reports/slow-moving").status_code == 200

    def test_report_range_validation(self, client, utc_shop):
        assert client.get("/api/reports/summary?start=nope").status_code == 400
        assert client.get(
            "/api/reports/summary?start=2025-01-03T00:00:00Z&end=2025-01-02T00:00:00Z"
        ).status_code == 400
        assert client.get("/api/reports/slow-moving?days=0").status_code == 400


class TestSettingsRoutes:
    def test_get_creates_defaults(self, client, db_session):
        body = client.get("/api/settings").get_json()
        assert body["shop_name"] == "My Shop"
        assert body["currency"] == "INR"

    def test_update(self, client, db_session):
        resp = client.put("/api/settings", json={"shop_name": "Ramesh General Store", "currency": "usd"})
        assert resp.status_code == 200
        assert resp.get_json()["shop_name"] == "Ramesh General Store"
        assert resp.get_json()["currency"] == "USD"

    @pytest.mark.parametrize("payload", [
        {"timezone": "Nowhere/Special"},
        {"currency": "RUPEES"},
        {"email": "not-an-email"},
        {"shop_name": ""},
        {"id": 5},
    ])
    def test_update_validation(self, client, db_session, payload):
        assert client.put("/api/settings", json=payload).status_code == 400


class TestAssistantRoutes:
    def test_chat_requires_message(self, client, db_session):
        assert client.post("/api/chat", json={}).status_code == 400
        assert client.post("/api/chat", json={"message": "   "}).status_code == 400

    def test_chat_falls_back_without_api_key(self, client, utc_shop):
        resp = client.post("/api/chat", json={"message": "How are sales?"})
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["message"].startswith("I'm currently unable")
        assert len(body["suggestions"]) == 3

    def test_inventory_insights_fallback(self, client, utc_shop):
        resp = client.get("/api/ai-insights/inventory")
        assert resp.status_code == 200
        assert resp.get_json()["message"] == "Unable to generate inventory insights at the moment."
