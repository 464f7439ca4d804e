# Overview: Named request channels over the ledger services; every call returns a tagged result.

"""
Bridge

The desktop UI talks to the engine through named channels ("sales.create",
"payments.process", ...). Each channel takes one payload (a dict with the
UI's camelCase keys, or a bare id for the simple lookups) and returns:

    {"success": True,  "data": ..., "msg": "..."}
    {"success": False, "error": "<ErrorKind>", "msg": "...", "details": {...}}

Services raise; this is the outer edge where errors become results. No
exception escapes Bridge.call().

Money values in payloads are integer cents.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from sqlalchemy.orm import Session

from .errors import LedgerError, NotFound, ValidationFailed
from .services.catalog_service import CatalogService
from .services.credit_policy import DEFAULT_MAX_CREDIT_LIMIT_CENTS, CreditPolicy
from .services.outstanding_service import OutstandingAggregator
from .services.payment_allocator import DEFAULT_MAX_PAYMENT_CENTS, PaymentAllocator
from .services.reporting_service import DEFAULT_LOW_STOCK_THRESHOLD, ReportingService
from .services.sale_engine import SaleEngine
from .services.stock_ledger import MOVEMENT_ADJUSTMENT, MOVEMENT_RESTOCK, StockLedger
from .time_utils import utcnow

logger = logging.getLogger(__name__)


def ok(data: Any = None, msg: str = "") -> dict:
    return {"success": True, "data": data, "msg": msg}


def fail(kind: str, msg: str, details: dict | None = None) -> dict:
    result = {"success": False, "error": kind, "msg": msg}
    if details:
        result["details"] = details
    return result


def _object(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationFailed("Request payload must be an object")
    return payload


def _get(payload: Any, *keys: str, default=None):
    """First present key; a scalar payload stands for the first key."""
    if payload is None:
        return default
    if not isinstance(payload, dict):
        return payload
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return default


PRODUCT_KEYS = {
    "name": "name",
    "price": "price_cents",
    "quantity": "quantity",
    "type": "type",
    "featured": "featured",
    "rating": "rating",
}


def _product_fields(payload: dict) -> dict:
    """UI product keys to service argument names; absent keys stay absent."""
    return {field: payload[key] for key, field in PRODUCT_KEYS.items() if key in payload}


class Bridge:
    """
    Channel registry bound to one session.

    Args:
        session: SQLAlchemy session shared by every service
        clock: "now" provider for timestamps and aging
        settings: optional overrides (MAX_PAYMENT_CENTS, MAX_CREDIT_LIMIT_CENTS,
            DEFAULT_PAYMENT_TERMS, LOW_STOCK_THRESHOLD), usually app.config
    """

    def __init__(
        self,
        session: Session,
        clock: Callable[[], datetime] = utcnow,
        settings: dict | None = None,
    ):
        settings = settings or {}
        self.session = session
        self.clock = clock

        self.stock = StockLedger(session, clock=clock)
        self.sales = SaleEngine(session, stock_ledger=self.stock, clock=clock)
        self.payments = PaymentAllocator(
            session,
            clock=clock,
            max_payment_cents=settings.get("MAX_PAYMENT_CENTS", DEFAULT_MAX_PAYMENT_CENTS),
        )
        self.outstanding = OutstandingAggregator(session, clock=clock)
        self.credit = CreditPolicy(
            session,
            max_credit_limit_cents=settings.get("MAX_CREDIT_LIMIT_CENTS", DEFAULT_MAX_CREDIT_LIMIT_CENTS),
            clock=clock,
        )
        self.catalog = CatalogService(
            session,
            stock_ledger=self.stock,
            clock=clock,
            default_payment_terms=settings.get("DEFAULT_PAYMENT_TERMS", "Net 30"),
            max_credit_limit_cents=settings.get("MAX_CREDIT_LIMIT_CENTS", DEFAULT_MAX_CREDIT_LIMIT_CENTS),
        )
        self.reports = ReportingService(
            session,
            clock=clock,
            low_stock_threshold=settings.get("LOW_STOCK_THRESHOLD", DEFAULT_LOW_STOCK_THRESHOLD),
        )

        # channel -> (handler, message used when an unexpected error occurs)
        self.channels: dict[str, tuple[Callable[[Any], dict], str]] = {
            "sales.create": (self._sales_create, "Failed to create sale"),
            "sales.get": (self._sales_get, "Failed to retrieve sale"),
            "sales.list": (self._sales_list, "Failed to retrieve sales"),
            "payments.process": (self._payments_process, "Failed to process payment"),
            "payments.getOutstanding": (self._payments_outstanding, "Failed to retrieve outstanding payments"),
            "payments.getCustomerDetails": (self._payments_customer, "Failed to retrieve customer payment details"),
            "payments.getHistory": (self._payments_history, "Failed to retrieve payment history"),
            "payments.getReport": (self._payments_report, "Failed to generate outstanding payments report"),
            "customers.create": (self._customers_create, "Failed to create customer"),
            "customers.get": (self._customers_get, "Failed to retrieve customer"),
            "customers.update": (self._customers_update, "Failed to update customer"),
            "customers.list": (self._customers_list, "Failed to retrieve customers"),
            "customers.updateCredit": (self._customers_update_credit, "Failed to update customer credit settings"),
            "customers.getCredit": (self._customers_credit, "Failed to retrieve customer credit"),
            "products.create": (self._products_create, "Failed to create product"),
            "products.get": (self._products_get, "Failed to retrieve product"),
            "products.list": (self._products_list, "Failed to retrieve products"),
            "products.update": (self._products_update, "Failed to update product"),
            "products.retire": (self._products_retire, "Failed to retire product"),
            "products.bulkCreate": (self._products_bulk_create, "Bulk product creation failed"),
            "products.bulkUpdate": (self._products_bulk_update, "Bulk product update failed"),
            "products.bulkRetire": (self._products_bulk_retire, "Bulk product retirement failed"),
            "stock.add": (self._stock_add, "Failed to add stock"),
            "stock.adjust": (self._stock_adjust, "Failed to adjust stock"),
            "stock.getMovements": (self._stock_movements, "Failed to retrieve stock movements"),
            "reports.sales": (self._reports_sales, "Failed to generate sales report"),
            "reports.inventory": (self._reports_inventory, "Failed to generate inventory report"),
            "reports.analytics": (self._reports_analytics, "Failed to generate analytics"),
            "ledger.verify": (self._ledger_verify, "Failed to verify ledger"),
        }

    def call(self, channel: str, payload: Any = None) -> dict:
        entry = self.channels.get(channel)
        if entry is None:
            return fail(NotFound.kind, f"Unknown channel: {channel}")

        handler, failure_msg = entry
        try:
            return handler(payload)
        except LedgerError as e:
            logger.warning("%s failed: %s (%s)", channel, e.message, e.kind)
            return fail(e.kind, e.message, e.details)
        except Exception:
            self.session.rollback()
            logger.exception("%s failed unexpectedly", channel)
            return fail("TransactionFailed", failure_msg)

    # =========================================================================
    # SALES
    # =========================================================================

    def _sales_create(self, payload):
        payload = _object(payload)
        sale = self.sales.create_sale(
            customer_id=_get(payload, "customerId", "customer_id"),
            line_items=_get(payload, "lineItems", "products", "line_items", default=[]),
            amount_paid_cents=_get(payload, "amountPaid", "amount_paid_cents", default=0),
            created_by=_get(payload, "createdBy", "created_by"),
        )
        return ok(sale.to_dict(), "Sale created successfully")

    def _sales_get(self, payload):
        sale = self.sales.get_sale(_get(payload, "saleId", "id"))
        return ok(sale.to_dict(), "Sale retrieved successfully")

    def _sales_list(self, payload):
        result = self.sales.list_sales(
            customer_id=_get(payload, "customerId"),
            payment_status=_get(payload, "paymentStatus"),
            page=_get(payload, "page", default=1),
            limit=_get(payload, "limit", default=50),
        )
        return ok(
            {"sales": [s.to_dict() for s in result["sales"]], "total": result["total"]},
            "Sales retrieved successfully",
        )

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    def _payments_process(self, payload):
        payload = _object(payload)
        amount = _get(payload, "amount", "amountCents")
        result = self.payments.process_payment(
            customer_id=_get(payload, "customerId"),
            amount_cents=amount,
            method=_get(payload, "paymentMethod", "method", default="cash"),
            notes=_get(payload, "notes"),
            reference_number=_get(payload, "referenceNumber"),
            created_by=_get(payload, "createdBy"),
        )
        return ok(
            result.to_dict(),
            f"Payment of {result.amount_requested} processed successfully. "
            f"{result.amount_applied} applied to outstanding balance.",
        )

    def _payments_outstanding(self, payload):
        filters = payload if isinstance(payload, dict) else {}
        data = self.outstanding.get_outstanding(
            search_term=filters.get("searchTerm"),
            aging_filter=filters.get("agingFilter"),
            customer_id=filters.get("customerId"),
            page=filters.get("page"),
            limit=filters.get("limit"),
        )
        return ok(data, "Outstanding payments retrieved successfully")

    def _payments_customer(self, payload):
        data = self.outstanding.get_customer_detail(_get(payload, "customerId"))
        return ok(data, "Customer payment details retrieved successfully")

    def _payments_history(self, payload):
        history = self.payments.get_history(
            customer_id=_get(payload, "customerId"),
            limit=_get(payload, "limit", default=100) if isinstance(payload, dict) else 100,
        )
        return ok(
            [record.to_dict() for record in history],
            f"Payment history retrieved successfully. {len(history)} records found.",
        )

    def _payments_report(self, payload):
        filters = payload if isinstance(payload, dict) else {}
        data = self.outstanding.get_report(
            search_term=filters.get("searchTerm"),
            aging_filter=filters.get("agingFilter"),
            customer_id=filters.get("customerId"),
        )
        return ok(data, "Outstanding payments report generated successfully")

    # =========================================================================
    # CUSTOMERS
    # =========================================================================

    def _customers_create(self, payload):
        payload = _object(payload)
        customer = self.catalog.create_customer(
            name=payload.get("name"),
            phone=payload.get("phone"),
            address=payload.get("address"),
            credit_limit_cents=payload.get("creditLimit"),
            payment_terms=payload.get("paymentTerms"),
            is_credit_enabled=payload.get("isCreditEnabled", True),
        )
        return ok(customer.to_dict(), "Customer created successfully")

    def _customers_get(self, payload):
        customer = self.catalog.get_customer(_get(payload, "customerId", "id"))
        return ok(customer.to_dict(), "Customer retrieved successfully")

    def _customers_update(self, payload):
        payload = _object(payload)
        customer = self.catalog.update_customer(
            customer_id=payload.get("customerId"),
            name=payload.get("name"),
            phone=payload.get("phone"),
            address=payload.get("address"),
        )
        return ok(customer.to_dict(), "Customer updated successfully")

    def _customers_list(self, payload):
        customers = self.catalog.list_customers(search=_get(payload, "search"))
        return ok([c.to_dict() for c in customers], "Customers retrieved successfully")

    def _customers_update_credit(self, payload):
        payload = _object(payload)
        customer = self.credit.update_credit_settings(
            customer_id=payload.get("customerId"),
            credit_limit_cents=payload.get("creditLimit"),
            payment_terms=payload.get("paymentTerms"),
            is_credit_enabled=payload.get("isCreditEnabled"),
        )
        return ok(customer.to_dict(), "Customer credit settings updated successfully")

    def _customers_credit(self, payload):
        data = self.credit.get_credit_status(_get(payload, "customerId", "id"))
        return ok(data, "Customer credit retrieved successfully")

    # =========================================================================
    # PRODUCTS & STOCK
    # =========================================================================

    def _products_create(self, payload):
        payload = _object(payload)
        product = self.catalog.create_product(
            name=payload.get("name"),
            price_cents=payload.get("price"),
            quantity=payload.get("quantity", 0),
            type=payload.get("type"),
            featured=payload.get("featured", False),
            rating=payload.get("rating", 0),
        )
        return ok(product.to_dict(), "Product created successfully")

    def _products_get(self, payload):
        product = self.catalog.get_product(_get(payload, "productId", "id"))
        return ok(product.to_dict(), "Product retrieved successfully")

    def _products_list(self, payload):
        filters = payload if isinstance(payload, dict) else {}
        products = self.catalog.list_products(search=filters.get("search"), type=filters.get("type"))
        return ok(
            {"product": [p.to_dict() for p in products], "total": len(products)},
            "Products retrieved successfully",
        )

    def _products_update(self, payload):
        payload = _object(payload)
        fields = _product_fields(payload)
        fields.pop("quantity", None)
        product = self.catalog.update_product(_get(payload, "productId", "id"), **fields)
        return ok(product.to_dict(), "Product updated successfully")

    def _products_retire(self, payload):
        product = self.catalog.retire_product(_get(payload, "productId", "id"))
        return ok(product.to_dict(), "Product retired successfully")

    def _products_bulk_create(self, payload):
        rows = _get(payload, "products", default=[])
        if isinstance(rows, list):
            rows = [_product_fields(row) if isinstance(row, dict) else row for row in rows]
        products = self.catalog.bulk_create_products(rows)
        return ok([p.to_dict() for p in products], f"{len(products)} products created successfully")

    def _products_bulk_update(self, payload):
        updates = _get(payload, "updates", default=[])
        rows = updates
        if isinstance(updates, list):
            rows = []
            for update in updates:
                if not isinstance(update, dict):
                    rows.append(update)
                    continue
                data = update.get("data") if isinstance(update.get("data"), dict) else update
                row = _product_fields(data)
                row.pop("quantity", None)
                row["id"] = update.get("id")
                rows.append(row)
        products = self.catalog.bulk_update_products(rows)
        return ok([p.to_dict() for p in products], f"{len(products)} products updated successfully")

    def _products_bulk_retire(self, payload):
        ids = _get(payload, "productIds", default=[])
        products = self.catalog.bulk_retire_products(ids)
        return ok(len(products), f"{len(products)} products retired successfully")

    def _stock_add(self, payload):
        payload = _object(payload)
        movement = self.stock.add_stock(
            product_id=payload.get("productId"),
            quantity=payload.get("quantity"),
            movement_type=payload.get("type") or MOVEMENT_RESTOCK,
            note=payload.get("note"),
        )
        return ok(movement.to_dict(), "Stock added successfully")

    def _stock_adjust(self, payload):
        payload = _object(payload)
        movement = self.stock.adjust_stock(
            product_id=payload.get("productId"),
            new_quantity=_get(payload, "newQuantity", "quantity"),
            reason=payload.get("reason") or MOVEMENT_ADJUSTMENT,
        )
        return ok(movement.to_dict(), "Stock adjusted successfully")

    def _stock_movements(self, payload):
        product = self.catalog.get_product(_get(payload, "productId", "id"))
        movements = self.stock.get_movements_for_product(product.id)
        return ok([m.to_dict() for m in movements], "Stock movements retrieved successfully")

    # =========================================================================
    # REPORTS
    # =========================================================================

    def _reports_sales(self, payload):
        data = self.reports.sales_report(
            start=_get(payload, "startDate") if isinstance(payload, dict) else None,
            end=_get(payload, "endDate") if isinstance(payload, dict) else None,
        )
        return ok(data, "Sales report generated successfully")

    def _reports_inventory(self, payload):
        return ok(self.reports.inventory_report(), "Inventory report generated successfully")

    def _reports_analytics(self, payload):
        filters = payload if isinstance(payload, dict) else {}
        data = self.reports.analytics(start=filters.get("startDate"), end=filters.get("endDate"))
        return ok(data, "Analytics generated successfully")

    def _ledger_verify(self, payload):
        data = self.reports.verify_ledger()
        msg = "Ledger is consistent" if data["ok"] else "Ledger discrepancies found"
        return ok(data, msg)
