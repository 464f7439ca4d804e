from __future__ import annotations

from uuid import uuid4

from ..extensions import db
from ..time_utils import to_utc_z


PRODUCT_STATUS_ACTIVE = 1
PRODUCT_STATUS_RETIRED = 0


class Product(db.Model):
    """
    Product master data.

    QUANTITY DESIGN DECISION:
    Product.quantity is a running balance kept in step with the stock table.
    - Only the stock ledger writes it (StockLedger.record_movement)
    - Every change appends a StockMovement row in the same transaction
    - SUM(stock.quantity) for a product always equals Product.quantity

    Prices are stored in cents; the UI only formats them for display.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_type", "type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(36), nullable=False, unique=True, default=lambda: str(uuid4()))

    name = db.Column(db.String(255), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    featured = db.Column(db.Boolean, nullable=False, default=False)
    rating = db.Column(db.Float, nullable=False, default=0)
    type = db.Column(db.String(64), nullable=False, default="general")

    quantity = db.Column(db.Integer, nullable=False, default=0)

    # PRODUCT_STATUS_ACTIVE or PRODUCT_STATUS_RETIRED
    status = db.Column(db.Integer, nullable=False, default=PRODUCT_STATUS_ACTIVE)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_updated = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "uuid": self.uuid,
            "name": self.name,
            "price_cents": self.price_cents,
            "featured": self.featured,
            "rating": self.rating,
            "type": self.type,
            "quantity": self.quantity,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "last_updated": to_utc_z(self.last_updated),
        }


class StockMovement(db.Model):
    """
    Append-only ledger of quantity changes.

    MOVEMENT TYPES:
    - initial: Opening quantity when a product is created
    - restock: Goods received
    - sale: Consumed by a sale (negative, sales_id set)
    - adjustment (or any free-text reason): Manual correction

    IMMUTABLE: Rows are never updated or deleted.
    """
    __tablename__ = "stock"
    __table_args__ = (
        db.Index("ix_stock_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Signed delta: positive = restock/return, negative = sale consumption
    quantity = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(32), nullable=False, index=True)

    sales_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    note = db.Column(db.String(255), nullable=True)
    status = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_updated = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "type": self.type,
            "sales_id": self.sales_id,
            "note": self.note,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "last_updated": to_utc_z(self.last_updated),
        }
