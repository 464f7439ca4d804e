# Overview: Service-layer operations for sales; creates credit sales and consumes stock.

"""
Sale Engine

WHY: A sale is the only place where stock is consumed and customer debt is
created, so both happen in one transaction with the sale row itself.

RULES:
- Availability is checked per product against the SUM of requested
  quantities, before anything is written.
- total = SUM(unit_price * quantity); outstanding = total - paid_now.
- Paying more than the total at checkout is rejected (OverPayment).
- One "sale" stock movement of -quantity per line, tagged with the sale id.
- customer.credit_balance += outstanding.
- Not idempotent: every call creates a new sale.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from ..errors import InsufficientStock, NotFound, OverPayment, ValidationFailed
from ..models import Customer, Product, Sale, SaleLine
from ..models.inventory import PRODUCT_STATUS_RETIRED
from ..models.sales import (
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_PENDING,
)
from ..time_utils import utcnow
from ..validation import FieldErrors
from .concurrency import lock_for_update, run_in_transaction
from .stock_ledger import MOVEMENT_SALE, StockLedger

logger = logging.getLogger(__name__)


def payment_status_for(total_paid_cents: int, outstanding_cents: int) -> str:
    """
    Derive a sale's payment status from its money columns.

    - paid: nothing outstanding
    - partial: something paid, something outstanding
    - pending: nothing paid yet
    """
    if outstanding_cents <= 0:
        return PAYMENT_STATUS_PAID
    if total_paid_cents > 0:
        return PAYMENT_STATUS_PARTIAL
    return PAYMENT_STATUS_PENDING


@dataclass(frozen=True)
class LineRequest:
    product_id: int
    quantity: int
    unit_price_cents: int | None = None


def _first(item: dict, *keys):
    for key in keys:
        if key in item and item[key] is not None:
            return item[key]
    return None


def parse_line_items(line_items, errors: FieldErrors) -> list[LineRequest]:
    """
    Normalize cart rows into LineRequest values.

    Accepts snake_case or the camelCase keys the UI sends
    (productId, unitPriceCents).
    """
    if not isinstance(line_items, (list, tuple)) or not line_items:
        errors.add("At least one line item is required")
        return []

    parsed: list[LineRequest] = []
    for index, item in enumerate(line_items, start=1):
        if isinstance(item, LineRequest):
            parsed.append(item)
            continue
        if not isinstance(item, dict):
            errors.add(f"Line {index} must be an object")
            continue
        before = len(errors.messages)
        product_id = errors.integer(
            _first(item, "product_id", "productId"), "product_id",
            minimum=1, label=f"Line {index} product ID",
        )
        quantity = errors.integer(
            item.get("quantity"), "quantity",
            minimum=1, label=f"Line {index} quantity",
        )
        price = errors.integer(
            _first(item, "unit_price_cents", "unitPriceCents", "price_cents", "priceCents"),
            "unit_price_cents", minimum=0, required=False, label=f"Line {index} price",
        )
        if len(errors.messages) == before:
            parsed.append(LineRequest(product_id, quantity, price))
    return parsed


class SaleEngine:
    def __init__(
        self,
        session: Session,
        stock_ledger: StockLedger | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.clock = clock
        self.stock_ledger = stock_ledger or StockLedger(session, clock=clock)

    # =========================================================================
    # SALE CREATION
    # =========================================================================

    def create_sale(
        self,
        customer_id,
        line_items: list,
        amount_paid_cents=0,
        created_by: int | None = None,
    ) -> Sale:
        """
        Create a sale from a cart and consume stock.

        Args:
            customer_id: Customer buying on this sale
            line_items: [{"product_id", "quantity", "unit_price_cents"?}, ...]
                A missing price uses the product's current price.
            amount_paid_cents: Money taken at checkout (0 = full credit sale)
            created_by: Optional user attribution

        Returns:
            The persisted Sale with its lines

        Raises:
            ValidationFailed: malformed input (nothing written)
            NotFound: unknown customer or product
            InsufficientStock: a product cannot cover the requested quantity
            OverPayment: amount_paid_cents > sale total
        """
        errors = FieldErrors()
        cid = errors.integer(customer_id, "customer_id", minimum=1, label="Valid customer ID")
        paid = errors.integer(
            amount_paid_cents, "amount_paid_cents", minimum=0, required=False, label="Amount paid",
        ) or 0
        requests = parse_line_items(line_items, errors)
        errors.raise_if_any()

        def _op():
            customer = lock_for_update(self.session.query(Customer).filter_by(id=cid)).first()
            if customer is None:
                raise NotFound("Customer not found")

            products = self._load_products(requests)
            self._validate_on_hand(requests, products)

            priced = []
            total = 0
            for req in requests:
                product = products[req.product_id]
                unit_price = req.unit_price_cents if req.unit_price_cents is not None else product.price_cents
                line_total = unit_price * req.quantity
                total += line_total
                priced.append((req, product, unit_price, line_total))

            if paid > total:
                raise OverPayment(
                    f"Amount paid ({paid}) exceeds sale total ({total})",
                    details={"amount_paid_cents": paid, "total_amount_cents": total},
                )

            outstanding = total - paid
            now = self.clock()

            sale = Sale(
                customer_id=customer.id,
                customer_name=customer.name,
                customer_phone=customer.phone,
                customer_address=customer.address,
                total_amount_cents=total,
                total_paid_cents=paid,
                outstanding_amount_cents=outstanding,
                payment_status=payment_status_for(paid, outstanding),
                created_by=created_by,
                created_at=now,
                last_updated=now,
            )
            self.session.add(sale)
            self.session.flush()  # Get sale ID for lines and movements

            for position, (req, product, unit_price, line_total) in enumerate(priced, start=1):
                sale.lines.append(SaleLine(
                    position=position,
                    product_id=product.id,
                    product_name=product.name,
                    quantity=req.quantity,
                    unit_price_cents=unit_price,
                    line_total_cents=line_total,
                ))
                self.stock_ledger.record_movement(
                    product.id,
                    -req.quantity,
                    MOVEMENT_SALE,
                    sale_id=sale.id,
                    note=f"Sale #{sale.id}",
                )

            if outstanding > 0:
                customer.credit_balance_cents = (customer.credit_balance_cents or 0) + outstanding
                customer.updated_at = now

            self.session.flush()
            return sale

        sale = run_in_transaction(self.session, _op)
        logger.info(
            "Created sale %s for customer %s: total=%s paid=%s outstanding=%s",
            sale.id, sale.customer_id, sale.total_amount_cents,
            sale.total_paid_cents, sale.outstanding_amount_cents,
        )
        return sale

    def _load_products(self, requests: list[LineRequest]) -> dict[int, Product]:
        products: dict[int, Product] = {}
        for req in requests:
            if req.product_id in products:
                continue
            product = lock_for_update(self.session.query(Product).filter_by(id=req.product_id)).first()
            if product is None:
                raise NotFound(f"Product with ID {req.product_id} not found")
            if product.status == PRODUCT_STATUS_RETIRED:
                raise ValidationFailed(f"Product {product.name} is retired and cannot be sold")
            products[req.product_id] = product
        return products

    def _validate_on_hand(self, requests: list[LineRequest], products: dict[int, Product]) -> None:
        requested: dict[int, int] = {}
        for req in requests:
            requested[req.product_id] = requested.get(req.product_id, 0) + req.quantity

        insufficient = []
        for product_id, qty in requested.items():
            product = products[product_id]
            if product.quantity < qty:
                insufficient.append({
                    "product_id": product_id,
                    "name": product.name,
                    "requested_quantity": qty,
                    "available_quantity": product.quantity,
                })

        if insufficient:
            first = insufficient[0]
            raise InsufficientStock(
                f"Insufficient stock for product {first['name']}. "
                f"Available: {first['available_quantity']}, Requested: {first['requested_quantity']}",
                details={"items": insufficient},
            )

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_sale(self, sale_id) -> Sale:
        errors = FieldErrors()
        sid = errors.integer(sale_id, "sale_id", minimum=1, label="Valid sale ID")
        errors.raise_if_any()

        sale = self.session.get(Sale, sid)
        if sale is None:
            raise NotFound(f"Sale {sid} not found")
        return sale

    def list_sales(
        self,
        customer_id=None,
        payment_status: str | None = None,
        page=1,
        limit=50,
    ) -> dict:
        """Sales newest first, with the unpaged total."""
        errors = FieldErrors()
        cid = errors.integer(customer_id, "customer_id", minimum=1, required=False, label="Valid customer ID")
        page_no = errors.integer(page, "page", minimum=1, required=False, label="Page") or 1
        per_page = errors.integer(limit, "limit", minimum=1, maximum=1000, required=False, label="Limit") or 50
        if payment_status is not None and payment_status not in (
            PAYMENT_STATUS_PENDING, PAYMENT_STATUS_PARTIAL, PAYMENT_STATUS_PAID,
        ):
            errors.add("Invalid payment status")
        errors.raise_if_any()

        query = self.session.query(Sale)
        if cid is not None:
            query = query.filter(Sale.customer_id == cid)
        if payment_status is not None:
            query = query.filter(Sale.payment_status == payment_status)

        total = query.count()
        sales = (
            query.order_by(Sale.created_at.desc(), Sale.id.desc())
            .offset((page_no - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return {"sales": sales, "total": total}
