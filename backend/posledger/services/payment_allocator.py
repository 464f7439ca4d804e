# Overview: Service-layer operations for customer payments; oldest-first allocation across unpaid sales.

"""
Payment Allocator

WHY: Customers pay against their account, not against a single sale. A
payment is spread across every sale that still has money owing, oldest
sale first, the way accounts-receivable aging expects debt to be retired.

ALGORITHM (one transaction):
1. Write an anchor PaymentRecord (sale_id NULL) for the amount handed over.
2. Load the customer's sales with outstanding > 0, ordered by created_at
   ascending (ties broken by id). Never reordered by amount.
3. remaining = amount
4. For each sale while remaining > 0:
     applied = min(remaining, outstanding)
     outstanding -= applied; total_paid += applied; status recomputed
     write a PaymentRecord scoped to the sale for `applied`
     remaining -= applied
5. customer.credit_balance -= (amount - remaining)

INVARIANTS:
- amount_applied + remaining_credit == amount
- SUM(applied over updated sales) == amount_applied
- No sale's outstanding ever goes negative
- Sales not reached by the loop are not touched

OVERPAYMENT: if money is left after every sale is settled, it is reported
back as remainingCredit. It is NOT stored as a prepayment or a negative
balance; the cashier hands it back or keeps track of it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from ..errors import NoOutstandingBalance, NotFound
from ..models import Customer, PaymentRecord, Sale
from ..models.sales import PAYMENT_STATUS_PAID, PAYMENT_STATUS_PARTIAL
from ..time_utils import to_utc_z, utcnow
from ..validation import FieldErrors
from .concurrency import lock_for_update, run_in_transaction

logger = logging.getLogger(__name__)


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CASH = "cash"
METHOD_CARD = "card"
METHOD_CREDIT_CARD = "credit_card"
METHOD_DEBIT_CARD = "debit_card"
METHOD_BANK_TRANSFER = "bank_transfer"
METHOD_CHECK = "check"
METHOD_MOBILE_PAYMENT = "mobile_payment"
METHOD_OTHER = "other"

VALID_PAYMENT_METHODS = [
    METHOD_CASH,
    METHOD_CARD,
    METHOD_CREDIT_CARD,
    METHOD_DEBIT_CARD,
    METHOD_BANK_TRANSFER,
    METHOD_CHECK,
    METHOD_MOBILE_PAYMENT,
    METHOD_OTHER,
]

PAYMENT_TYPE_PAYMENT = "payment"

# 1,000,000.00
DEFAULT_MAX_PAYMENT_CENTS = 100_000_000


@dataclass
class SaleAllocation:
    sale_id: int
    amount_paid: int
    new_outstanding: int
    payment_status: str

    def to_dict(self) -> dict:
        return {
            "saleId": self.sale_id,
            "amountPaid": self.amount_paid,
            "newOutstanding": self.new_outstanding,
            "paymentStatus": self.payment_status,
        }


@dataclass
class AllocationResult:
    payment_id: int
    amount_requested: int
    amount_applied: int
    remaining_credit: int
    updated_sales: list[SaleAllocation] = field(default_factory=list)

    @property
    def total_sales_updated(self) -> int:
        return len(self.updated_sales)

    def to_dict(self) -> dict:
        return {
            "paymentId": self.payment_id,
            "amountApplied": self.amount_applied,
            "remainingCredit": self.remaining_credit,
            "updatedSales": [s.to_dict() for s in self.updated_sales],
            "totalSalesUpdated": self.total_sales_updated,
        }


def normalize_payment_method(method: str | None, errors: FieldErrors) -> str | None:
    if method is None or (isinstance(method, str) and not method.strip()):
        return METHOD_CASH
    value = str(method).strip().lower()
    if value not in VALID_PAYMENT_METHODS:
        errors.add("Invalid payment method")
        return None
    return value


def status_after_payment(sale: Sale, new_outstanding: int) -> str:
    """
    Status of a sale once an allocation has been applied.

    paid when nothing is left, partial when some of the total is left,
    otherwise the sale keeps its current status.
    """
    if new_outstanding == 0:
        return PAYMENT_STATUS_PAID
    if 0 < new_outstanding < sale.total_amount_cents:
        return PAYMENT_STATUS_PARTIAL
    return sale.payment_status


class PaymentAllocator:
    def __init__(
        self,
        session: Session,
        clock: Callable[[], datetime] = utcnow,
        max_payment_cents: int = DEFAULT_MAX_PAYMENT_CENTS,
    ):
        self.session = session
        self.clock = clock
        self.max_payment_cents = max_payment_cents

    # =========================================================================
    # PAYMENT PROCESSING
    # =========================================================================

    def process_payment(
        self,
        customer_id,
        amount_cents,
        method: str | None = METHOD_CASH,
        notes: str | None = None,
        reference_number: str | None = None,
        created_by: int | None = None,
    ) -> AllocationResult:
        """
        Apply a payment to a customer's outstanding sales, oldest first.

        Args:
            customer_id: Paying customer
            amount_cents: Amount handed over (in cents)
            method: One of VALID_PAYMENT_METHODS (case-insensitive, default cash)
            notes: Free text stored on the anchor record
            reference_number: Card auth code, check number, etc. (optional)
            created_by: User taking the payment (optional)

        Returns:
            AllocationResult

        Raises:
            ValidationFailed: bad amount or method (nothing written)
            NotFound: customer does not exist
            NoOutstandingBalance: customer owes nothing
        """
        errors = FieldErrors()
        cid = errors.integer(customer_id, "customer_id", minimum=1, label="Valid customer ID")
        amount = errors.integer(amount_cents, "amount_cents", minimum=1, label="Payment amount")
        if amount is not None and amount > self.max_payment_cents:
            errors.add("Payment amount exceeds maximum allowed limit")
        tender = normalize_payment_method(method, errors)
        note_text = errors.text(notes, "notes", required=False, label="Notes")
        reference = errors.text(reference_number, "reference_number", required=False, max_length=128,
                                label="Reference number")
        errors.raise_if_any()

        def _op() -> AllocationResult:
            customer = lock_for_update(self.session.query(Customer).filter_by(id=cid)).first()
            if customer is None:
                raise NotFound("Customer not found")

            sales = self._outstanding_sales(cid)
            if not sales:
                raise NoOutstandingBalance("Customer has no outstanding balance")

            now = self.clock()

            # Anchor record for the amount requested
            anchor = PaymentRecord(
                customer_id=cid,
                sale_id=None,
                payment_amount_cents=amount,
                payment_method=tender,
                payment_date=now,
                payment_type=PAYMENT_TYPE_PAYMENT,
                reference_number=reference,
                notes=note_text,
                created_by=created_by,
                created_at=now,
            )
            self.session.add(anchor)
            self.session.flush()  # Get anchor ID for the result

            remaining = amount
            updated: list[SaleAllocation] = []

            for sale in sales:
                if remaining <= 0:
                    break

                applied = min(remaining, sale.outstanding_amount_cents)
                new_outstanding = sale.outstanding_amount_cents - applied
                new_status = status_after_payment(sale, new_outstanding)

                sale.outstanding_amount_cents = new_outstanding
                sale.total_paid_cents = (sale.total_paid_cents or 0) + applied
                sale.payment_status = new_status
                sale.last_updated = now

                self.session.add(PaymentRecord(
                    customer_id=cid,
                    sale_id=sale.id,
                    payment_amount_cents=applied,
                    payment_method=tender,
                    payment_date=now,
                    payment_type=PAYMENT_TYPE_PAYMENT,
                    reference_number=reference,
                    notes=f"Payment applied to sale #{sale.id}",
                    created_by=created_by,
                    created_at=now,
                ))

                remaining -= applied
                updated.append(SaleAllocation(
                    sale_id=sale.id,
                    amount_paid=applied,
                    new_outstanding=new_outstanding,
                    payment_status=new_status,
                ))

            amount_applied = amount - remaining
            customer.credit_balance_cents = (customer.credit_balance_cents or 0) - amount_applied
            customer.updated_at = now

            self.session.flush()
            return AllocationResult(
                payment_id=anchor.id,
                amount_requested=amount,
                amount_applied=amount_applied,
                remaining_credit=remaining,
                updated_sales=updated,
            )

        result = run_in_transaction(self.session, _op)
        logger.info(
            "Processed payment %s for customer %s: requested=%s applied=%s remaining=%s sales=%s",
            result.payment_id, cid, amount, result.amount_applied,
            result.remaining_credit, result.total_sales_updated,
        )
        if result.remaining_credit > 0:
            logger.warning(
                "Payment %s exceeded outstanding balance of customer %s by %s; excess not stored",
                result.payment_id, cid, result.remaining_credit,
            )
        return result

    def _outstanding_sales(self, customer_id: int) -> list[Sale]:
        """Oldest first; the allocation order depends on this and nothing else."""
        query = self.session.query(Sale).filter(
            Sale.customer_id == customer_id,
            Sale.outstanding_amount_cents > 0,
        ).order_by(Sale.created_at.asc(), Sale.id.asc())
        return lock_for_update(query).all()

    # =========================================================================
    # HISTORY
    # =========================================================================

    def get_history(self, customer_id=None, limit=100) -> list[PaymentRecord]:
        """
        Payment records, newest first.

        Args:
            customer_id: Restrict to one customer (optional)
            limit: Maximum rows (None = no limit)
        """
        errors = FieldErrors()
        cid = errors.integer(customer_id, "customer_id", minimum=1, required=False, label="Valid customer ID")
        max_rows = errors.integer(limit, "limit", minimum=1, maximum=10_000, required=False, label="Limit")
        errors.raise_if_any()

        query = self.session.query(PaymentRecord)
        if cid is not None:
            query = query.filter(PaymentRecord.customer_id == cid)
        query = query.order_by(PaymentRecord.payment_date.desc(), PaymentRecord.id.desc())
        if max_rows is not None:
            query = query.limit(max_rows)
        return query.all()


def payment_summary(history: list[PaymentRecord]) -> dict:
    """
    Summarize a customer's payment history.

    - totalPaid: money actually applied to sales (allocation rows)
    - paymentCount: payments taken (anchor rows)
    - lastPayment: most recent anchor row
    - averagePayment: totalPaid / paymentCount (half-up to the cent)

    `history` is expected newest first, as get_history returns it.
    """
    anchors = [record for record in history if not record.is_allocation]
    total_paid = sum(record.payment_amount_cents for record in history if record.is_allocation)
    count = len(anchors)

    last = anchors[0] if anchors else None
    return {
        "totalPaid": total_paid,
        "paymentCount": count,
        "lastPayment": {
            "amount": last.payment_amount_cents,
            "date": to_utc_z(last.payment_date),
            "method": last.payment_method,
        } if last else None,
        "averagePayment": (total_paid + count // 2) // count if count else 0,
    }
