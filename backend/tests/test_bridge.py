"""
Bridge tests.

Verifies the tagged result shape for every kind of outcome and that the
channels pass UI payloads through to the services.
"""

import pytest

from posledger.models import Product, StockMovement


@pytest.fixture
def seeded(bridge):
    customer = bridge.call("customers.create", {"name": "Abena", "phone": "0201234567", "creditLimit": 10000})
    product = bridge.call("products.create", {"name": "Rice", "price": 1200, "quantity": 10})
    return customer["data"], product["data"]


class TestResultShape:
    def test_success(self, seeded, bridge):
        customer, product = seeded

        result = bridge.call("sales.create", {
            "customerId": customer["id"],
            "lineItems": [{"productId": product["id"], "quantity": 3}],
            "amountPaid": 600,
        })

        assert result["success"] is True
        assert result["msg"] == "Sale created successfully"
        assert result["data"]["total_amount_cents"] == 3600
        assert result["data"]["outstanding_amount_cents"] == 3000
        assert result["data"]["payment_status"] == "partial"
        assert result["data"]["products"][0]["quantity"] == 3

    def test_business_error(self, seeded, bridge, db_session):
        customer, product = seeded

        result = bridge.call("sales.create", {
            "customerId": customer["id"],
            "lineItems": [{"productId": product["id"], "quantity": 11}],
        })

        assert result["success"] is False
        assert result["error"] == "InsufficientStock"
        assert result["msg"] == "Insufficient stock for product Rice. Available: 10, Requested: 11"
        assert result["details"]["items"][0]["requested_quantity"] == 11
        assert db_session.get(Product, product["id"]).quantity == 10

    def test_validation_error_joined(self, bridge):
        result = bridge.call("payments.process", {"customerId": 0, "amount": 0, "paymentMethod": "iou"})

        assert result == {
            "success": False,
            "error": "ValidationFailed",
            "msg": "Valid customer ID must be greater than 0, "
                   "Payment amount must be greater than 0, Invalid payment method",
        }

    def test_unknown_channel(self, bridge):
        result = bridge.call("payments.refund", {})

        assert result["success"] is False
        assert result["error"] == "NotFound"

    def test_unexpected_error_becomes_transaction_failed(self, bridge, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(bridge.reports, "inventory_report", explode)

        result = bridge.call("reports.inventory")

        assert result == {"success": False, "error": "TransactionFailed", "msg": "Failed to generate inventory report"}

    def test_non_object_payload(self, bridge):
        result = bridge.call("payments.process", 42)

        assert result["error"] == "ValidationFailed"


class TestChannels:
    def test_payment_flow(self, seeded, bridge):
        customer, product = seeded
        bridge.call("sales.create", {
            "customerId": customer["id"],
            "lineItems": [{"productId": product["id"], "quantity": 2}],
        })

        paid = bridge.call("payments.process", {
            "customerId": customer["id"], "amount": 3000, "paymentMethod": "CASH",
        })
        assert paid["success"] is True
        assert paid["data"]["amountApplied"] == 2400
        assert paid["data"]["remainingCredit"] == 600
        assert paid["msg"] == "Payment of 3000 processed successfully. 2400 applied to outstanding balance."

        again = bridge.call("payments.process", {"customerId": customer["id"], "amount": 100})
        assert again["error"] == "NoOutstandingBalance"

        history = bridge.call("payments.getHistory", {"customerId": customer["id"]})
        assert len(history["data"]) == 2
        assert history["msg"] == "Payment history retrieved successfully. 2 records found."

    def test_outstanding_detail_and_report(self, seeded, bridge):
        customer, product = seeded
        bridge.call("sales.create", {
            "customerId": customer["id"],
            "lineItems": [{"productId": product["id"], "quantity": 1}],
        })

        outstanding = bridge.call("payments.getOutstanding", {"searchTerm": "abe"})
        assert outstanding["data"]["totalAmount"] == 1200
        assert outstanding["data"]["outstandingPayments"][0]["customer_name"] == "Abena"

        detail = bridge.call("payments.getCustomerDetails", customer["id"])
        assert detail["data"]["totalOutstanding"] == 1200
        assert detail["data"]["creditUtilization"] == 12.0

        report = bridge.call("payments.getReport", {})
        assert report["data"]["summary"]["totalCustomers"] == 1

    def test_credit_channels(self, seeded, bridge):
        customer, _ = seeded

        updated = bridge.call("customers.updateCredit", {
            "customerId": customer["id"], "creditLimit": None, "paymentTerms": "Net 7",
        })
        assert updated["data"]["payment_terms"] == "Net 7"
        assert updated["data"]["credit_limit_cents"] is None

        status = bridge.call("customers.getCredit", customer["id"])
        assert status["data"]["availableCredit"] is None

    def test_stock_channels(self, seeded, bridge, db_session):
        _, product = seeded

        added = bridge.call("stock.add", {"productId": product["id"], "quantity": 5})
        adjusted = bridge.call("stock.adjust", {"productId": product["id"], "newQuantity": 12, "reason": "count"})
        movements = bridge.call("stock.getMovements", product["id"])

        assert added["data"]["type"] == "restock"
        assert adjusted["data"]["quantity"] == -3
        assert [m["quantity"] for m in movements["data"]] == [10, 5, -3]
        assert db_session.query(StockMovement).count() == 3

    def test_listing_and_reports(self, seeded, bridge):
        products = bridge.call("products.list", {"search": "ric"})
        assert products["data"]["total"] == 1

        sales = bridge.call("sales.list", {})
        assert sales["data"] == {"sales": [], "total": 0}

        assert bridge.call("reports.sales", {})["data"]["totalSales"] == 0
        assert bridge.call("reports.inventory")["data"]["totalProducts"] == 1
        assert bridge.call("ledger.verify")["data"]["ok"] is True


class TestEditingChannels:
    def test_customer_create_over_ceiling(self, bridge):
        result = bridge.call("customers.create", {"name": "Big", "creditLimit": 10**12})

        assert result["error"] == "ValidationFailed"
        assert result["msg"] == "Credit limit exceeds maximum allowed amount"

    def test_customer_update_keeps_balance(self, seeded, bridge):
        customer, product = seeded
        bridge.call("sales.create", {
            "customerId": customer["id"],
            "lineItems": [{"productId": product["id"], "quantity": 1}],
        })

        result = bridge.call("customers.update", {"customerId": customer["id"], "name": "Abena K.", "phone": ""})

        assert result["msg"] == "Customer updated successfully"
        assert result["data"]["name"] == "Abena K."
        assert result["data"]["phone"] is None
        assert result["data"]["credit_balance_cents"] == 1200
        sale = bridge.call("sales.list", {})["data"]["sales"][0]
        assert sale["customer_name"] == "Abena"

    def test_product_update_ignores_quantity(self, seeded, bridge):
        _, product = seeded

        result = bridge.call("products.update", {"productId": product["id"], "price": 1500, "quantity": 99})

        assert result["msg"] == "Product updated successfully"
        assert result["data"]["price_cents"] == 1500
        assert result["data"]["quantity"] == 10

    def test_product_retire(self, seeded, bridge):
        _, product = seeded

        retired = bridge.call("products.retire", {"productId": product["id"]})

        assert retired["msg"] == "Product retired successfully"
        assert bridge.call("products.list", {})["data"]["total"] == 0
        assert bridge.call("products.retire", {"productId": 999})["error"] == "NotFound"

    def test_bulk_create_all_or_nothing(self, bridge, db_session):
        bad = bridge.call("products.bulkCreate", {"products": [
            {"name": "Pen", "price": 100},
            {"name": "Cap", "price": -1},
        ]})
        assert bad["error"] == "ValidationFailed"
        assert bad["msg"] == "Row 2: Price cannot be negative"
        assert db_session.query(Product).count() == 0

        good = bridge.call("products.bulkCreate", {"products": [
            {"name": "Pen", "price": 100, "quantity": 3},
            {"name": "Cap", "price": 50},
        ]})
        assert good["msg"] == "2 products created successfully"
        assert [p["quantity"] for p in good["data"]] == [3, 0]

    def test_bulk_update_and_retire(self, seeded, bridge):
        _, product = seeded

        updated = bridge.call("products.bulkUpdate", {"updates": [{"id": product["id"], "data": {"name": "Jasmine Rice"}}]})
        assert updated["msg"] == "1 products updated successfully"
        assert updated["data"][0]["name"] == "Jasmine Rice"

        retired = bridge.call("products.bulkRetire", {"productIds": [product["id"]]})
        assert retired["data"] == 1

    def test_analytics(self, seeded, bridge):
        result = bridge.call("reports.analytics", {})

        assert result["msg"] == "Analytics generated successfully"
        assert result["data"]["overview"]["totalProducts"] == 1
        assert result["data"]["inventory"]["totalValue"] == 12000

        assert bridge.call("reports.analytics", {"startDate": "yesterday"})["error"] == "ValidationFailed"
