from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


PAYMENT_STATUS_PENDING = "pending"
PAYMENT_STATUS_PARTIAL = "partial"
PAYMENT_STATUS_PAID = "paid"


class Sale(db.Model):
    """
    Sale document with its credit position.

    WHY snapshot columns: customer_name/phone/address are captured when the
    sale is created and never re-synced, so receipts keep showing the
    contact details that were valid at the time of sale.

    MONEY (cents):
    - total_amount_cents: SUM(lines.line_total_cents), fixed at creation
    - total_paid_cents: paid at checkout + every allocation since
    - outstanding_amount_cents: total - paid, never negative

    PAYMENT STATUS (derived):
    - pending: nothing paid, something owed
    - partial: something paid, something owed
    - paid: nothing owed
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_customer_created", "customer_id", "created_at"),
        db.Index("ix_sales_customer_outstanding", "customer_id", "outstanding_amount_cents"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    # Point-in-time snapshot of the customer
    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=True)
    customer_address = db.Column(db.String(255), nullable=True)

    total_amount_cents = db.Column(db.Integer, nullable=False)
    total_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    outstanding_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_STATUS_PENDING, index=True)

    status = db.Column(db.String(16), nullable=False, default="COMPLETED")
    created_by = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    last_updated = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    lines = db.relationship(
        "SaleLine",
        back_populates="sale",
        order_by="SaleLine.position",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "total_amount_cents": self.total_amount_cents,
            "total_paid_cents": self.total_paid_cents,
            "outstanding_amount_cents": self.outstanding_amount_cents,
            "payment_status": self.payment_status,
            "status": self.status,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "last_updated": to_utc_z(self.last_updated),
            "customer": {
                "id": self.customer_id,
                "name": self.customer_name,
                "phone": self.customer_phone,
                "address": self.customer_address,
            },
        }
        if include_lines:
            data["products"] = [line.to_dict() for line in self.lines]
        return data


class SaleLine(db.Model):
    """
    Line item owned by a sale.

    IMMUTABLE: unit price and product name are captured at sale time and
    are never updated, even if the product's price or name changes later.
    """
    __tablename__ = "sale_lines"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "position", name="uq_sale_lines_sale_position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    sale = db.relationship("Sale", back_populates="lines")

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.product_name,
            "quantity": self.quantity,
            "price_cents": self.unit_price_cents,
            "total_cents": self.line_total_cents,
        }


class PaymentRecord(db.Model):
    """
    Append-only payment history.

    One processed payment writes:
    - an anchor row (sale_id NULL) for the amount the customer handed over
    - one row per sale the money was allocated to (sale_id set)

    SUM(amount over the allocation rows of one payment) is the amount
    actually applied, which is <= the anchor amount.

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "payment_history"
    __table_args__ = (
        db.Index("ix_payment_history_customer_date", "customer_id", "payment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    payment_amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False, default="cash")
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    payment_type = db.Column(db.String(32), nullable=False, default="payment")

    reference_number = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("payment_history", lazy=True))
    sale = db.relationship("Sale", backref=db.backref("payment_history", lazy=True))

    @property
    def is_allocation(self) -> bool:
        return self.sale_id is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "sale_id": self.sale_id,
            "payment_amount_cents": self.payment_amount_cents,
            "payment_method": self.payment_method,
            "payment_date": to_utc_z(self.payment_date),
            "payment_type": self.payment_type,
            "reference_number": self.reference_number,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
