# Overview: Read-side aggregation of customer debt; aging buckets, risk and reports.

"""
Outstanding / Aging Aggregator

Pure reads. Nothing here writes to storage.

AGING BUCKETS (whole days since the sale was created, not since the last
payment):
- current: <= 30
- 31-60:   31..60
- 61-90:   61..90
- 90+:     > 90

TWO VIEWS, TWO AGES:
- List view (get_outstanding): one row per customer. days_outstanding is the
  age of the customer's NEWEST outstanding sale, so a customer only ages out
  of "current" once all of their debt is old.
- Detail view (get_customer_detail): every outstanding sale is bucketed on
  its own age.

RISK (evaluated in this order, first match wins):
- high:   days_outstanding > 90, or a credit limit is set and exceeded
- medium: 60 < days_outstanding <= 90
- low:    everything else
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..errors import NotFound
from ..models import Customer, Sale
from ..time_utils import days_since, to_utc_z, utcnow
from ..validation import LIKE_ESCAPE, FieldErrors, contains_pattern
from .payment_allocator import PaymentAllocator, payment_summary


BUCKET_CURRENT = "current"
BUCKET_31_60 = "31-60"
BUCKET_61_90 = "61-90"
BUCKET_90_PLUS = "90+"

AGING_BUCKETS = [BUCKET_CURRENT, BUCKET_31_60, BUCKET_61_90, BUCKET_90_PLUS]

FILTER_OVERDUE = "overdue"
FILTER_ALL = "all"

RISK_HIGH = "highRisk"
RISK_MEDIUM = "mediumRisk"
RISK_LOW = "lowRisk"

TOP_DEBTORS_LIMIT = 10


def aging_bucket(days: int) -> str:
    if days <= 30:
        return BUCKET_CURRENT
    if days <= 60:
        return BUCKET_31_60
    if days <= 90:
        return BUCKET_61_90
    return BUCKET_90_PLUS


def risk_level(days: int, total_outstanding_cents: int, credit_limit_cents: int | None) -> str:
    if days > 90 or (credit_limit_cents is not None and total_outstanding_cents > credit_limit_cents):
        return RISK_HIGH
    if days > 60:
        return RISK_MEDIUM
    return RISK_LOW


def _matches_aging_filter(days: int, aging_filter: str | None) -> bool:
    if aging_filter is None or aging_filter == FILTER_ALL:
        return True
    if aging_filter == FILTER_OVERDUE:
        return days > 30
    return aging_bucket(days) == aging_filter


def credit_utilization(total_outstanding_cents: int, credit_limit_cents: int | None) -> float:
    """Percent of the credit limit in use; 0 when no (or a zero) limit is set."""
    if not credit_limit_cents:
        return 0
    return round(total_outstanding_cents / credit_limit_cents * 100, 2)


class OutstandingAggregator:
    def __init__(self, session: Session, clock: Callable[[], datetime] = utcnow):
        self.session = session
        self.clock = clock

    # =========================================================================
    # LIST VIEW
    # =========================================================================

    def get_outstanding(
        self,
        search_term: str | None = None,
        aging_filter: str | None = None,
        customer_id=None,
        page=None,
        limit=None,
    ) -> dict:
        """
        One row per customer with at least one outstanding sale.

        Rows are ordered by total outstanding (desc), then customer id.
        totalAmount / totalCustomers / summary cover every row that passed
        the filters, before paging.
        """
        errors = FieldErrors()
        cid = errors.integer(customer_id, "customer_id", minimum=1, required=False, label="Valid customer ID")
        page_no = errors.integer(page, "page", minimum=1, required=False, label="Page")
        per_page = errors.integer(limit, "limit", minimum=1, maximum=1000, required=False, label="Limit")
        term = errors.text(search_term, "search_term", required=False, max_length=255, label="Search term")
        if aging_filter is not None:
            aging_filter = str(aging_filter).strip().lower() or None
        if aging_filter is not None and aging_filter not in AGING_BUCKETS + [FILTER_OVERDUE, FILTER_ALL]:
            errors.add("Invalid aging filter")
        errors.raise_if_any()

        rows = self._customer_rows(term, cid)
        rows = [row for row in rows if _matches_aging_filter(row["days_outstanding"], aging_filter)]
        rows.sort(key=lambda r: (-r["total_outstanding_cents"], r["customer_id"]))

        total_amount = sum(row["total_outstanding_cents"] for row in rows)
        summary = self._summary(rows)
        total_customers = len(rows)

        if per_page is not None:
            start = ((page_no or 1) - 1) * per_page
            rows = rows[start:start + per_page]

        self._attach_sale_ids(rows)
        return {
            "outstandingPayments": rows,
            "totalAmount": total_amount,
            "totalCustomers": total_customers,
            "summary": summary,
        }

    def _customer_rows(self, term: str | None, customer_id: int | None) -> list[dict]:
        query = self.session.query(
            Customer.id.label("customer_id"),
            Customer.name,
            Customer.phone,
            Customer.address,
            Customer.credit_limit_cents,
            Customer.payment_terms,
            func.sum(Sale.outstanding_amount_cents).label("total_outstanding"),
            func.count(Sale.id).label("sales_count"),
            func.min(Sale.created_at).label("oldest_sale_date"),
            func.max(Sale.created_at).label("latest_sale_date"),
        ).join(Sale, Sale.customer_id == Customer.id).filter(
            Sale.outstanding_amount_cents > 0,
        )

        if customer_id is not None:
            query = query.filter(Customer.id == customer_id)
        if term:
            pattern = contains_pattern(term)
            query = query.filter(or_(
                Customer.name.ilike(pattern, escape=LIKE_ESCAPE),
                Customer.phone.ilike(pattern, escape=LIKE_ESCAPE),
            ))

        query = query.group_by(
            Customer.id,
            Customer.name,
            Customer.phone,
            Customer.address,
            Customer.credit_limit_cents,
            Customer.payment_terms,
        )

        now = self.clock()
        rows = []
        for row in query.all():
            # Newest outstanding sale decides the customer's age
            days = days_since(row.latest_sale_date, now)
            rows.append({
                "customer_id": row.customer_id,
                "customer_name": row.name,
                "phone": row.phone,
                "address": row.address,
                "credit_limit_cents": row.credit_limit_cents,
                "payment_terms": row.payment_terms,
                "total_outstanding_cents": int(row.total_outstanding or 0),
                "outstanding_sales_count": int(row.sales_count or 0),
                "oldest_sale_date": to_utc_z(row.oldest_sale_date),
                "latest_sale_date": to_utc_z(row.latest_sale_date),
                "days_outstanding": days,
                "aging_bucket": aging_bucket(days),
            })
        return rows

    def _attach_sale_ids(self, rows: list[dict]) -> None:
        if not rows:
            return
        customer_ids = [row["customer_id"] for row in rows]
        sale_rows = (
            self.session.query(Sale.customer_id, Sale.id)
            .filter(
                Sale.customer_id.in_(customer_ids),
                Sale.outstanding_amount_cents > 0,
            )
            .order_by(Sale.created_at.asc(), Sale.id.asc())
            .all()
        )
        by_customer: dict[int, list[int]] = {cid: [] for cid in customer_ids}
        for owner_id, sale_id in sale_rows:
            by_customer[owner_id].append(sale_id)
        for row in rows:
            row["sale_ids"] = by_customer[row["customer_id"]]

    @staticmethod
    def _summary(rows: list[dict]) -> dict:
        current = [r for r in rows if r["days_outstanding"] <= 30]
        overdue = [r for r in rows if r["days_outstanding"] > 30]
        return {
            "current": {
                "count": len(current),
                "amount": sum(r["total_outstanding_cents"] for r in current),
            },
            "overdue": {
                "count": len(overdue),
                "amount": sum(r["total_outstanding_cents"] for r in overdue),
            },
        }

    # =========================================================================
    # DETAIL VIEW
    # =========================================================================

    def get_customer_detail(self, customer_id) -> dict:
        errors = FieldErrors()
        cid = errors.integer(customer_id, "customer_id", minimum=1, label="Valid customer ID")
        errors.raise_if_any()

        customer = self.session.get(Customer, cid)
        if customer is None:
            raise NotFound("Customer not found")

        sales = (
            self.session.query(Sale)
            .filter(Sale.customer_id == cid, Sale.outstanding_amount_cents > 0)
            .order_by(Sale.created_at.asc(), Sale.id.asc())
            .all()
        )
        history = PaymentAllocator(self.session, clock=self.clock).get_history(cid, limit=None)

        now = self.clock()
        total_outstanding = sum(sale.outstanding_amount_cents for sale in sales)

        # Each sale is bucketed on its own age here
        aging = {bucket: {"count": 0, "amount": 0} for bucket in AGING_BUCKETS}
        outstanding_sales = []
        for sale in sales:
            days = days_since(sale.created_at, now)
            bucket = aging_bucket(days)
            aging[bucket]["count"] += 1
            aging[bucket]["amount"] += sale.outstanding_amount_cents

            data = sale.to_dict(include_lines=False)
            data["days_outstanding"] = days
            data["aging_bucket"] = bucket
            outstanding_sales.append(data)

        return {
            "customer": customer.to_dict(),
            "outstandingSales": outstanding_sales,
            "paymentHistory": [record.to_dict() for record in history],
            "totalOutstanding": total_outstanding,
            "agingAnalysis": aging,
            "paymentSummary": payment_summary(history),
            "creditUtilization": credit_utilization(total_outstanding, customer.credit_limit_cents),
        }

    # =========================================================================
    # REPORT
    # =========================================================================

    def get_report(self, search_term=None, aging_filter=None, customer_id=None) -> dict:
        """Portfolio summary over the same rows the list view produces."""
        listing = self.get_outstanding(
            search_term=search_term,
            aging_filter=aging_filter,
            customer_id=customer_id,
        )
        rows = listing["outstandingPayments"]
        total = listing["totalAmount"]
        count = len(rows)

        breakdown = {bucket: 0 for bucket in AGING_BUCKETS}
        risk = {level: {"count": 0, "amount": 0} for level in (RISK_HIGH, RISK_MEDIUM, RISK_LOW)}
        for row in rows:
            breakdown[aging_bucket(row["days_outstanding"])] += 1
            level = risk_level(row["days_outstanding"], row["total_outstanding_cents"], row["credit_limit_cents"])
            risk[level]["count"] += 1
            risk[level]["amount"] += row["total_outstanding_cents"]

        # rows are already ordered by total outstanding desc
        top = [
            {
                "customerId": row["customer_id"],
                "customerName": row["customer_name"],
                "outstandingAmount": row["total_outstanding_cents"],
                "daysPastDue": row["days_outstanding"],
                "salesCount": row["outstanding_sales_count"],
            }
            for row in rows[:TOP_DEBTORS_LIMIT]
        ]

        return {
            "summary": {
                "totalCustomers": count,
                "totalOutstanding": total,
                "averageOutstanding": (total + count // 2) // count if count else 0,
            },
            "agingBreakdown": breakdown,
            "topDebtors": top,
            "riskAnalysis": risk,
            "generatedAt": to_utc_z(self.clock()),
        }
