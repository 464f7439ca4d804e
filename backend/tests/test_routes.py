"""
HTTP route tests.

Routes are thin: they shape request data into bridge payloads and map
error kinds onto status codes (NotFound 404, TransactionFailed 500,
everything else 400).
"""

import pytest


@pytest.fixture
def shop(client):
    customer = client.post("/api/customers", json={"name": "Yaa", "creditLimit": 50000}).get_json()["data"]
    product = client.post("/api/products", json={"name": "Oil 1L", "price": 2500, "quantity": 8}).get_json()["data"]
    return customer, product


class TestSystem:
    def test_health(self, client):
        resp = client.get("/api/health")

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["details"] == {"products": 0, "customers": 0, "sales": 0}

    def test_cors_for_local_ui(self, client):
        resp = client.get("/api/health", headers={"Origin": "http://localhost:5173"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

        resp = client.get("/api/health", headers={"Origin": "http://evil.example"})
        assert "Access-Control-Allow-Origin" not in resp.headers

    def test_bridge_endpoint(self, client, shop):
        customer, _ = shop

        resp = client.post("/api/bridge/customers.getCredit", json=customer["id"])

        assert resp.status_code == 200
        assert resp.get_json()["data"]["creditLimit"] == 50000

    def test_bridge_unknown_channel(self, client):
        resp = client.post("/api/bridge/nope.nothing", json={})

        assert resp.status_code == 404
        assert resp.get_json()["msg"] == "Unknown channel: nope.nothing"

    def test_ledger_verify(self, client, shop):
        resp = client.get("/api/ledger/verify")

        assert resp.status_code == 200
        assert resp.get_json()["msg"] == "Ledger is consistent"


class TestSalesAndPayments:
    def test_sale_then_payment(self, client, shop):
        customer, product = shop

        sale = client.post("/api/sales", json={
            "customerId": customer["id"],
            "lineItems": [{"productId": product["id"], "quantity": 2}],
            "amountPaid": 1000,
        })
        assert sale.status_code == 201
        sale_id = sale.get_json()["data"]["id"]

        outstanding = client.get("/api/payments/outstanding").get_json()["data"]
        assert outstanding["totalAmount"] == 4000
        assert outstanding["outstandingPayments"][0]["sale_ids"] == [sale_id]

        paid = client.post("/api/payments", json={
            "customerId": customer["id"], "amount": 4000, "paymentMethod": "mobile_payment",
        })
        assert paid.status_code == 201
        assert paid.get_json()["data"]["updatedSales"][0]["paymentStatus"] == "paid"

        fetched = client.get(f"/api/sales/{sale_id}").get_json()["data"]
        assert fetched["payment_status"] == "paid"
        assert fetched["outstanding_amount_cents"] == 0

        history = client.get(f"/api/payments/history?customer_id={customer['id']}").get_json()
        assert len(history["data"]) == 2

        detail = client.get(f"/api/payments/customers/{customer['id']}").get_json()["data"]
        assert detail["totalOutstanding"] == 0

    def test_sale_list_filters(self, client, shop):
        customer, product = shop
        client.post("/api/sales", json={
            "customerId": customer["id"],
            "lineItems": [{"productId": product["id"], "quantity": 1}],
        })

        pending = client.get("/api/sales?payment_status=pending").get_json()["data"]
        paid = client.get("/api/sales?payment_status=paid").get_json()["data"]

        assert pending["total"] == 1
        assert paid["total"] == 0

    def test_payment_validation_is_400(self, client, shop):
        customer, _ = shop

        resp = client.post("/api/payments", json={"customerId": customer["id"], "amount": -5})

        assert resp.status_code == 400
        assert resp.get_json()["error"] == "ValidationFailed"

    def test_payment_without_debt_is_400(self, client, shop):
        customer, _ = shop

        resp = client.post("/api/payments", json={"customerId": customer["id"], "amount": 500})

        assert resp.status_code == 400
        assert resp.get_json()["error"] == "NoOutstandingBalance"

    def test_insufficient_stock_is_400(self, client, shop):
        customer, product = shop

        resp = client.post("/api/sales", json={
            "customerId": customer["id"],
            "lineItems": [{"productId": product["id"], "quantity": 9}],
        })

        assert resp.status_code == 400
        assert resp.get_json()["error"] == "InsufficientStock"

    def test_missing_sale_is_404(self, client):
        resp = client.get("/api/sales/4242")

        assert resp.status_code == 404
        assert resp.get_json()["error"] == "NotFound"

    def test_report(self, client, shop):
        resp = client.get("/api/payments/report")

        assert resp.status_code == 200
        assert resp.get_json()["data"]["summary"]["totalCustomers"] == 0


class TestCatalogRoutes:
    def test_customer_credit(self, client, shop):
        customer, _ = shop

        resp = client.put(f"/api/customers/{customer['id']}/credit", json={
            "creditLimit": 90000, "paymentTerms": "Net 14",
        })
        assert resp.status_code == 200
        assert resp.get_json()["data"]["credit_limit_cents"] == 90000

        status = client.get(f"/api/customers/{customer['id']}/credit").get_json()["data"]
        assert status["availableCredit"] == 90000
        assert status["paymentTerms"] == "Net 14"

    def test_customer_lookup(self, client, shop):
        assert client.get("/api/customers?search=ya").get_json()["data"][0]["name"] == "Yaa"
        assert client.get("/api/customers/999").status_code == 404

    def test_products_and_stock(self, client, shop):
        _, product = shop

        added = client.post("/api/stock/add", json={"productId": product["id"], "quantity": 4})
        adjusted = client.post("/api/stock/adjust", json={"productId": product["id"], "newQuantity": 10})
        movements = client.get(f"/api/stock/{product['id']}/movements").get_json()["data"]

        assert added.status_code == 201
        assert adjusted.status_code == 201
        assert [m["quantity"] for m in movements] == [8, 4, -2]
        assert client.get(f"/api/products/{product['id']}").get_json()["data"]["quantity"] == 10
        assert client.get("/api/products?search=oil").get_json()["data"]["total"] == 1

    def test_reports(self, client, shop):
        inventory = client.get("/api/reports/inventory").get_json()["data"]
        assert inventory["lowStockItems"] == 1

        bad = client.get("/api/reports/sales?start=not-a-date")
        assert bad.status_code == 400

    def test_edit_customer(self, client, shop):
        customer, _ = shop

        resp = client.put(f"/api/customers/{customer['id']}", json={"address": "5 Ring Road"})

        assert resp.status_code == 200
        assert resp.get_json()["data"]["address"] == "5 Ring Road"
        assert client.put("/api/customers/999", json={"name": "X"}).status_code == 404

    def test_edit_and_retire_product(self, client, shop):
        _, product = shop

        edited = client.put(f"/api/products/{product['id']}", json={"name": "Oil 1.5L", "price": 3400})
        assert edited.status_code == 200
        assert edited.get_json()["data"]["price_cents"] == 3400

        retired = client.delete(f"/api/products/{product['id']}")
        assert retired.status_code == 200
        assert client.get("/api/products").get_json()["data"]["total"] == 0
        assert client.get(f"/api/products/{product['id']}").status_code == 200

    def test_bulk_products(self, client):
        created = client.post("/api/products/bulk", json={"products": [
            {"name": "Pen", "price": 100}, {"name": "Ink", "price": 300},
        ]})
        assert created.status_code == 201
        ids = [p["id"] for p in created.get_json()["data"]]

        updated = client.put("/api/products/bulk", json={"updates": [{"id": ids[0], "data": {"price": 120}}]})
        assert updated.status_code == 200

        retired = client.post("/api/products/bulk/retire", json={"productIds": ids})
        assert retired.get_json()["data"] == 2

        missing = client.put("/api/products/bulk", json={"updates": [{"id": 999, "data": {"price": 1}}]})
        assert missing.status_code == 404

    def test_analytics(self, client, shop):
        resp = client.get("/api/reports/analytics")

        assert resp.status_code == 200
        assert resp.get_json()["data"]["overview"]["totalCustomers"] == 1
