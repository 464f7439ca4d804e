from __future__ import annotations

from uuid import uuid4

from ..extensions import db
from ..time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data plus the credit account.

    CREDIT FIELDS:
    - credit_limit_cents: NULL means no limit configured
    - credit_balance_cents: SUM(sales.outstanding_amount_cents) for this
      customer. Written only by SaleEngine (increase) and PaymentAllocator
      (decrease), never by the credit policy or the UI.
    - payment_terms: free-text label, e.g. "Net 30"
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(36), nullable=False, unique=True, default=lambda: str(uuid4()))

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    credit_limit_cents = db.Column(db.Integer, nullable=True)
    credit_balance_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_terms = db.Column(db.String(64), nullable=False, default="Net 30")
    is_credit_enabled = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Customer id={self.id} name={self.name!r} balance={self.credit_balance_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "uuid": self.uuid,
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "credit_limit_cents": self.credit_limit_cents,
            "credit_balance_cents": self.credit_balance_cents,
            "payment_terms": self.payment_terms,
            "is_credit_enabled": self.is_credit_enabled,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
