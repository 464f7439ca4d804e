# Overview: Service-layer operations for stock; the only writer of product quantities.

"""
Stock Ledger

Invariants (authoritative):
- Every quantity change appends exactly one StockMovement row.
- Product.quantity == SUM(stock.quantity) for that product at all times.
- Movements are never updated or deleted.
- record_movement() is mechanical: it does not forbid a negative resulting
  quantity. Availability policy belongs to the caller (see SaleEngine).
- record_movement() never commits; it joins the caller's transaction.
"""

from __future__ import annotations

import logging
from typing import Callable
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..errors import NotFound
from ..models import Product, StockMovement
from ..time_utils import utcnow
from ..validation import FieldErrors
from .concurrency import lock_for_update, run_in_transaction

logger = logging.getLogger(__name__)


MOVEMENT_INITIAL = "initial"
MOVEMENT_RESTOCK = "restock"
MOVEMENT_SALE = "sale"
MOVEMENT_ADJUSTMENT = "adjustment"


class StockLedger:
    def __init__(self, session: Session, clock: Callable[[], datetime] = utcnow):
        self.session = session
        self.clock = clock

    def _get_product(self, product_id: int, *, lock: bool = False) -> Product:
        query = self.session.query(Product).filter_by(id=product_id)
        if lock:
            query = lock_for_update(query)
        product = query.first()
        if product is None:
            raise NotFound(f"Product with ID {product_id} not found")
        return product

    def record_movement(
        self,
        product_id: int,
        delta_quantity: int,
        movement_type: str,
        sale_id: int | None = None,
        note: str | None = None,
    ) -> StockMovement:
        """
        Append a movement and apply its delta to the product's quantity.

        Runs inside the caller's transaction (flush only, no commit).
        """
        product = self._get_product(product_id, lock=True)
        now = self.clock()

        movement = StockMovement(
            product_id=product.id,
            quantity=delta_quantity,
            type=movement_type,
            sales_id=sale_id,
            note=note,
            created_at=now,
            last_updated=now,
        )
        self.session.add(movement)

        product.quantity = (product.quantity or 0) + delta_quantity
        product.last_updated = now

        self.session.flush()
        return movement

    def get_movements_for_product(self, product_id: int) -> list[StockMovement]:
        """Movements for one product, oldest first."""
        self._get_product(product_id)
        return (
            self.session.query(StockMovement)
            .filter_by(product_id=product_id)
            .order_by(StockMovement.created_at.asc(), StockMovement.id.asc())
            .all()
        )

    def quantity_from_movements(self, product_id: int) -> int:
        total = self.session.query(
            func.coalesce(func.sum(StockMovement.quantity), 0)
        ).filter(StockMovement.product_id == product_id).scalar()
        return int(total or 0)

    def add_stock(
        self,
        product_id,
        quantity,
        movement_type: str = MOVEMENT_RESTOCK,
        note: str | None = None,
    ) -> StockMovement:
        """Receive goods: a positive movement in its own transaction."""
        errors = FieldErrors()
        pid = errors.integer(product_id, "product_id", minimum=1, label="Valid product ID")
        qty = errors.integer(quantity, "quantity", minimum=1, label="Quantity")
        kind = errors.text(movement_type, "type", max_length=32, label="Movement type")
        errors.raise_if_any()

        movement = run_in_transaction(
            self.session,
            lambda: self.record_movement(pid, qty, kind, note=note),
        )
        logger.info("Added %s units to product %s (%s)", qty, pid, kind)
        return movement

    def adjust_stock(
        self,
        product_id,
        new_quantity,
        reason: str = MOVEMENT_ADJUSTMENT,
    ) -> StockMovement:
        """
        Set a product's quantity to a counted value.

        The movement records the difference (new - current), so the stock
        table stays the full history of how the quantity got there.
        """
        errors = FieldErrors()
        pid = errors.integer(product_id, "product_id", minimum=1, label="Valid product ID")
        target = errors.integer(new_quantity, "new_quantity", minimum=0, label="New quantity")
        kind = errors.text(reason, "reason", max_length=32, label="Reason")
        errors.raise_if_any()

        def _op():
            product = self._get_product(pid, lock=True)
            delta = target - product.quantity
            return self.record_movement(pid, delta, kind, note=f"Adjusted to {target}")

        movement = run_in_transaction(self.session, _op)
        logger.info("Adjusted product %s by %s (%s)", pid, movement.quantity, kind)
        return movement
