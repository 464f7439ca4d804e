# Overview: Service-layer operations for master data; products and customers.

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..errors import NotFound
from ..models import Customer, Product
from ..models.inventory import PRODUCT_STATUS_ACTIVE, PRODUCT_STATUS_RETIRED
from ..time_utils import utcnow
from ..validation import LIKE_ESCAPE, FieldErrors, as_bool, contains_pattern
from .concurrency import lock_for_update, run_in_transaction
from .credit_policy import DEFAULT_MAX_CREDIT_LIMIT_CENTS
from .stock_ledger import MOVEMENT_INITIAL, StockLedger

logger = logging.getLogger(__name__)


MAX_BULK_ROWS = 500


class CatalogService:
    """
    Creates, edits and looks up products and customers.

    A product's opening quantity goes through the stock ledger as an
    "initial" movement; the row itself is inserted with quantity 0. Edits
    never touch quantities or balances: products change quantity through
    the stock ledger, customers change balance through sales and payments.

    Products are retired rather than deleted so their movements and sale
    lines keep a parent row.
    """

    def __init__(
        self,
        session: Session,
        stock_ledger: StockLedger | None = None,
        clock: Callable[[], datetime] = utcnow,
        default_payment_terms: str = "Net 30",
        max_credit_limit_cents: int = DEFAULT_MAX_CREDIT_LIMIT_CENTS,
    ):
        self.session = session
        self.clock = clock
        self.stock_ledger = stock_ledger or StockLedger(session, clock=clock)
        self.default_payment_terms = default_payment_terms
        self.max_credit_limit_cents = max_credit_limit_cents

    # =========================================================================
    # PRODUCTS
    # =========================================================================

    def create_product(
        self,
        name,
        price_cents,
        quantity=0,
        type: str | None = None,
        featured=False,
        rating=0,
    ) -> Product:
        errors = FieldErrors()
        fields = _clean_product(
            {
                "name": name,
                "price_cents": price_cents,
                "quantity": quantity,
                "type": type,
                "featured": featured,
                "rating": rating,
            },
            errors,
            creating=True,
        )
        errors.raise_if_any()

        product = run_in_transaction(self.session, lambda: self._insert_product(fields))
        logger.info("Created product %s (%s) with quantity %s", product.id, product.name, product.quantity)
        return product

    def _insert_product(self, fields: dict) -> Product:
        now = self.clock()
        opening = fields.pop("quantity", 0)
        product = Product(quantity=0, created_at=now, last_updated=now, **fields)
        self.session.add(product)
        self.session.flush()

        if opening > 0:
            self.stock_ledger.record_movement(product.id, opening, MOVEMENT_INITIAL, note="Opening quantity")
        return product

    def update_product(
        self,
        product_id,
        name=None,
        price_cents=None,
        type: str | None = None,
        featured=None,
        rating=None,
    ) -> Product:
        """
        Change a product's descriptive fields. None leaves a field as it is.

        Quantity is not editable here; use StockLedger.add_stock/adjust_stock.
        """
        errors = FieldErrors()
        pid = errors.integer(product_id, "product_id", minimum=1, label="Valid product ID")
        fields = _clean_product(
            {"name": name, "price_cents": price_cents, "type": type, "featured": featured, "rating": rating},
            errors,
            creating=False,
        )
        errors.raise_if_any()

        product = run_in_transaction(self.session, lambda: self._apply_product_update(pid, fields))
        logger.info("Updated product %s: %s", product.id, ", ".join(sorted(fields)) or "no changes")
        return product

    def _apply_product_update(self, product_id: int, fields: dict) -> Product:
        product = lock_for_update(self.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise NotFound(f"Product with ID {product_id} not found")
        if fields:
            for column, value in fields.items():
                setattr(product, column, value)
            product.last_updated = self.clock()
        self.session.flush()
        return product

    def retire_product(self, product_id) -> Product:
        """Hide a product from listings and new sales; its history stays."""
        errors = FieldErrors()
        pid = errors.integer(product_id, "product_id", minimum=1, label="Valid product ID")
        errors.raise_if_any()

        product = run_in_transaction(self.session, lambda: self._retire(pid))
        logger.info("Retired product %s (%s)", product.id, product.name)
        return product

    def _retire(self, product_id: int) -> Product:
        product = lock_for_update(self.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise NotFound(f"Product with ID {product_id} not found")
        if product.status != PRODUCT_STATUS_RETIRED:
            product.status = PRODUCT_STATUS_RETIRED
            product.last_updated = self.clock()
        self.session.flush()
        return product

    # =========================================================================
    # BULK PRODUCT OPERATIONS (all or nothing)
    # =========================================================================

    def bulk_create_products(self, rows) -> list[Product]:
        """
        Create many products in one transaction.

        Every row is validated before anything is written; problems are
        reported as "Row <n>: <message>" (1-based).
        """
        errors = FieldErrors()
        _check_batch(rows, errors)
        cleaned = []
        for index, row in enumerate(rows or [], start=1):
            row_errors = FieldErrors()
            if isinstance(row, dict):
                cleaned.append(_clean_product(row, row_errors, creating=True))
            else:
                row_errors.add("Product must be an object")
            for message in row_errors.messages:
                errors.add(f"Row {index}: {message}")
        errors.raise_if_any()

        products = run_in_transaction(
            self.session,
            lambda: [self._insert_product(fields) for fields in cleaned],
        )
        logger.info("Bulk created %s products", len(products))
        return products

    def bulk_update_products(self, updates) -> list[Product]:
        """
        Apply many product edits in one transaction.

        Each update is {"id": <product id>, <field>: <value>, ...} with the
        same fields as update_product. An unknown id rolls back the batch.
        """
        errors = FieldErrors()
        _check_batch(updates, errors)
        cleaned = []
        for index, update in enumerate(updates or [], start=1):
            row_errors = FieldErrors()
            if isinstance(update, dict):
                pid = row_errors.integer(update.get("id"), "id", minimum=1, label="Valid product ID")
                cleaned.append((pid, _clean_product(update, row_errors, creating=False)))
            else:
                row_errors.add("Update must be an object")
            for message in row_errors.messages:
                errors.add(f"Row {index}: {message}")
        errors.raise_if_any()

        products = run_in_transaction(
            self.session,
            lambda: [self._apply_product_update(pid, fields) for pid, fields in cleaned],
        )
        logger.info("Bulk updated %s products", len(products))
        return products

    def bulk_retire_products(self, product_ids) -> list[Product]:
        errors = FieldErrors()
        _check_batch(product_ids, errors)
        ids = []
        for index, value in enumerate(product_ids or [], start=1):
            row_errors = FieldErrors()
            ids.append(row_errors.integer(value, "product_id", minimum=1, label="Valid product ID"))
            for message in row_errors.messages:
                errors.add(f"Row {index}: {message}")
        errors.raise_if_any()

        products = run_in_transaction(self.session, lambda: [self._retire(pid) for pid in ids])
        logger.info("Bulk retired %s products", len(products))
        return products

    # =========================================================================
    # PRODUCT QUERIES
    # =========================================================================

    def get_product(self, product_id) -> Product:
        errors = FieldErrors()
        pid = errors.integer(product_id, "product_id", minimum=1, label="Valid product ID")
        errors.raise_if_any()

        product = self.session.get(Product, pid)
        if product is None:
            raise NotFound(f"Product with ID {pid} not found")
        return product

    def list_products(self, search: str | None = None, type: str | None = None) -> list[Product]:
        query = self.session.query(Product).filter(Product.status == PRODUCT_STATUS_ACTIVE)
        if search and search.strip():
            query = query.filter(Product.name.ilike(contains_pattern(search.strip()), escape=LIKE_ESCAPE))
        if type and type.strip():
            query = query.filter(Product.type == type.strip())
        return query.order_by(Product.name.asc(), Product.id.asc()).all()

    # =========================================================================
    # CUSTOMERS
    # =========================================================================

    def create_customer(
        self,
        name,
        phone=None,
        address=None,
        credit_limit_cents=None,
        payment_terms=None,
        is_credit_enabled=True,
    ) -> Customer:
        errors = FieldErrors()
        clean_name = errors.text(name, "name", max_length=255, label="Customer name")
        clean_phone = errors.phone(phone)
        clean_address = errors.text(address, "address", required=False, max_length=255, label="Address")
        limit = errors.integer(
            credit_limit_cents,
            "credit_limit_cents",
            minimum=0,
            maximum=self.max_credit_limit_cents,
            required=False,
            label="Credit limit",
        )
        terms = errors.text(payment_terms, "payment_terms", required=False, max_length=64, label="Payment terms")
        errors.raise_if_any()

        def _op() -> Customer:
            now = self.clock()
            customer = Customer(
                name=clean_name,
                phone=clean_phone,
                address=clean_address,
                credit_limit_cents=limit,
                credit_balance_cents=0,
                payment_terms=terms or self.default_payment_terms,
                is_credit_enabled=as_bool(is_credit_enabled, default=True),
                created_at=now,
                updated_at=now,
            )
            self.session.add(customer)
            self.session.flush()
            return customer

        customer = run_in_transaction(self.session, _op)
        logger.info("Created customer %s (%s)", customer.id, customer.name)
        return customer

    def update_customer(self, customer_id, name=None, phone=None, address=None) -> Customer:
        """
        Edit contact details. None leaves a field as it is; "" clears phone
        or address.

        Credit settings go through CreditPolicy and the balance is never
        written here. Sales keep the name, phone and address they were
        made with.
        """
        errors = FieldErrors()
        cid = errors.integer(customer_id, "customer_id", minimum=1, label="Valid customer ID")
        changes = {}
        if name is not None:
            changes["name"] = errors.text(name, "name", max_length=255, label="Customer name")
        if phone is not None:
            changes["phone"] = errors.phone(phone)
        if address is not None:
            changes["address"] = errors.text(address, "address", required=False, max_length=255, label="Address")
        errors.raise_if_any()

        def _op() -> Customer:
            customer = lock_for_update(self.session.query(Customer).filter_by(id=cid)).first()
            if customer is None:
                raise NotFound("Customer not found")
            if changes:
                for column, value in changes.items():
                    setattr(customer, column, value)
                customer.updated_at = self.clock()
            self.session.flush()
            return customer

        customer = run_in_transaction(self.session, _op)
        logger.info("Updated customer %s: %s", customer.id, ", ".join(sorted(changes)) or "no changes")
        return customer

    def get_customer(self, customer_id) -> Customer:
        errors = FieldErrors()
        cid = errors.integer(customer_id, "customer_id", minimum=1, label="Valid customer ID")
        errors.raise_if_any()

        customer = self.session.get(Customer, cid)
        if customer is None:
            raise NotFound("Customer not found")
        return customer

    def list_customers(self, search: str | None = None) -> list[Customer]:
        query = self.session.query(Customer)
        if search and search.strip():
            pattern = contains_pattern(search.strip())
            query = query.filter(or_(
                Customer.name.ilike(pattern, escape=LIKE_ESCAPE),
                Customer.phone.ilike(pattern, escape=LIKE_ESCAPE),
            ))
        return query.order_by(Customer.name.asc(), Customer.id.asc()).all()


def _clean_product(data: dict, errors: FieldErrors, *, creating: bool) -> dict:
    """
    Validated product columns.

    On create every field is taken (with defaults); on update only the
    fields present and not None.
    """
    fields = {}

    def given(key: str) -> bool:
        return creating or data.get(key) is not None

    if given("name"):
        fields["name"] = errors.text(data.get("name"), "name", max_length=255, label="Product name")
    if given("price_cents"):
        fields["price_cents"] = errors.integer(data.get("price_cents"), "price_cents", minimum=0, label="Price")
    if creating:
        fields["quantity"] = errors.integer(
            data.get("quantity"), "quantity", minimum=0, required=False, label="Quantity",
        ) or 0
    if given("type"):
        kind = errors.text(data.get("type"), "type", required=not creating, max_length=64, label="Type")
        fields["type"] = kind or "general"
    if given("featured"):
        fields["featured"] = as_bool(data.get("featured"))
    if given("rating"):
        fields["rating"] = _rating(data.get("rating"), errors)
    return fields


def _check_batch(rows, errors: FieldErrors) -> None:
    if not isinstance(rows, list) or not rows:
        errors.add("At least one row is required")
    elif len(rows) > MAX_BULK_ROWS:
        errors.add(f"At most {MAX_BULK_ROWS} rows per batch")
    errors.raise_if_any()


def _rating(value, errors: FieldErrors) -> float:
    if value is None or value == "":
        return 0
    try:
        score = float(value)
    except (TypeError, ValueError):
        errors.add("Rating must be a number")
        return 0
    if score < 0 or score > 5:
        errors.add("Rating must be between 0 and 5")
        return 0
    return score
