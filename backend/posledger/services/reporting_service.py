# Overview: Service-layer operations for reporting; sales, inventory, analytics and ledger integrity.

from __future__ import annotations

from datetime import datetime
from typing import Callable

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..errors import ValidationFailed
from ..models import Customer, Product, Sale, StockMovement
from ..models.inventory import PRODUCT_STATUS_ACTIVE
from ..time_utils import parse_iso_datetime, to_utc_z, utcnow


DEFAULT_LOW_STOCK_THRESHOLD = 10
TOP_PRODUCTS_LIMIT = 10


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end) if end else None
    except ValueError:
        raise ValidationFailed("Dates must be ISO-8601 (YYYY-MM-DD or YYYY-MM-DDTHH:MM:SS)")
    if start_dt and end_dt and start_dt > end_dt:
        raise ValidationFailed("Start date must be before end date")
    return start_dt, end_dt


def _range_filters(start_dt: datetime | None, end_dt: datetime | None) -> list:
    filters = []
    if start_dt:
        filters.append(Sale.created_at >= start_dt)
    if end_dt:
        filters.append(Sale.created_at <= end_dt)
    return filters


def _half_up(total: int, count: int) -> int:
    return (total + count // 2) // count if count else 0


class ReportingService:
    def __init__(
        self,
        session: Session,
        clock: Callable[[], datetime] = utcnow,
        low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
    ):
        self.session = session
        self.clock = clock
        self.low_stock_threshold = low_stock_threshold

    def _sale_totals(self, filters: list) -> tuple[int, int, int, int]:
        """(count, revenue, paid, outstanding) over the filtered sales."""
        totals = self.session.query(
            func.count(Sale.id),
            func.coalesce(func.sum(Sale.total_amount_cents), 0),
            func.coalesce(func.sum(Sale.total_paid_cents), 0),
            func.coalesce(func.sum(Sale.outstanding_amount_cents), 0),
        ).filter(*filters).one()
        count, revenue, paid, outstanding = (int(v or 0) for v in totals)
        return count, revenue, paid, outstanding

    def sales_report(self, start: str | None = None, end: str | None = None) -> dict:
        """Sales totals for a date range, with a per-day breakdown keyed by YYYY-MM-DD."""
        start_dt, end_dt = _parse_range(start, end)
        filters = _range_filters(start_dt, end_dt)
        count, revenue, paid, outstanding = self._sale_totals(filters)

        day = func.strftime("%Y-%m-%d", Sale.created_at)
        rows = self.session.query(
            day.label("date"),
            func.count(Sale.id).label("count"),
            func.coalesce(func.sum(Sale.total_amount_cents), 0).label("total_amount"),
            func.coalesce(func.sum(Sale.total_paid_cents), 0).label("total_paid"),
            func.coalesce(func.sum(Sale.outstanding_amount_cents), 0).label("outstanding"),
        ).filter(*filters).group_by("date").order_by("date").all()

        return {
            "start": to_utc_z(start_dt) if start_dt else None,
            "end": to_utc_z(end_dt) if end_dt else None,
            "totalSales": count,
            "totalRevenue": revenue,
            "totalPaid": paid,
            "totalOutstanding": outstanding,
            "averageSaleAmount": _half_up(revenue, count),
            "salesByDate": {
                row.date: {
                    "date": row.date,
                    "count": int(row.count or 0),
                    "totalAmount": int(row.total_amount or 0),
                    "totalPaid": int(row.total_paid or 0),
                    "outstanding": int(row.outstanding or 0),
                }
                for row in rows
            },
        }

    def inventory_report(self) -> dict:
        total = (
            self.session.query(func.count(Product.id))
            .filter(Product.status == PRODUCT_STATUS_ACTIVE)
            .scalar()
        ) or 0
        low = (
            self.session.query(Product)
            .filter(Product.status == PRODUCT_STATUS_ACTIVE, Product.quantity < self.low_stock_threshold)
            .order_by(Product.quantity.asc(), Product.name.asc())
            .all()
        )
        return {
            "totalProducts": int(total),
            "lowStockThreshold": self.low_stock_threshold,
            "lowStockItems": len(low),
            "lowStockProducts": [
                {"id": p.id, "name": p.name, "quantity": p.quantity, "type": p.type}
                for p in low
            ],
        }

    def analytics(self, start: str | None = None, end: str | None = None) -> dict:
        """
        Dashboard figures: overview, inventory value and monthly sales trends.

        Product figures cover active products and ignore the date range;
        sale figures respect it. monthlyTrends rows are
        {month: "YYYY-MM", sales: Σ total, revenue: Σ paid, orders: count},
        oldest month first.
        """
        start_dt, end_dt = _parse_range(start, end)
        filters = _range_filters(start_dt, end_dt)
        count, revenue, paid, outstanding = self._sale_totals(filters)

        products = (
            self.session.query(Product)
            .filter(Product.status == PRODUCT_STATUS_ACTIVE)
            .order_by(Product.quantity.desc(), Product.name.asc(), Product.id.asc())
            .all()
        )
        customers = self.session.query(func.count(Customer.id)).scalar() or 0

        month = func.strftime("%Y-%m", Sale.created_at)
        trends = self.session.query(
            month.label("month"),
            func.coalesce(func.sum(Sale.total_amount_cents), 0).label("sales"),
            func.coalesce(func.sum(Sale.total_paid_cents), 0).label("revenue"),
            func.count(Sale.id).label("orders"),
        ).filter(*filters).group_by("month").order_by("month").all()

        return {
            "overview": {
                "totalProducts": len(products),
                "totalCustomers": int(customers),
                "totalSales": count,
                "totalRevenue": revenue,
                "averageOrderValue": _half_up(revenue, count),
            },
            "inventory": {
                "totalValue": sum(p.price_cents * p.quantity for p in products),
                "lowStockItems": sum(1 for p in products if p.quantity < self.low_stock_threshold),
                "outOfStockItems": sum(1 for p in products if p.quantity <= 0),
                "topProducts": [
                    {"id": p.id, "name": p.name, "quantity": p.quantity, "value": p.price_cents * p.quantity}
                    for p in products[:TOP_PRODUCTS_LIMIT]
                ],
            },
            "sales": {
                "totalSales": count,
                "totalRevenue": revenue,
                "totalPaid": paid,
                "totalOutstanding": outstanding,
                "monthlyTrends": [
                    {
                        "month": row.month,
                        "sales": int(row.sales or 0),
                        "revenue": int(row.revenue or 0),
                        "orders": int(row.orders or 0),
                    }
                    for row in trends
                ],
            },
            "generatedAt": to_utc_z(self.clock()),
        }

    # =========================================================================
    # LEDGER INTEGRITY
    # =========================================================================

    def verify_ledger(self) -> dict:
        """
        Cross-check the running balances against the rows they summarize.

        - customer.credit_balance_cents == SUM(sales.outstanding_amount_cents)
        - product.quantity == SUM(stock.quantity)
        - sale: total_paid + outstanding == total, outstanding >= 0

        Returns lists of discrepancies; all empty means the ledger is consistent.
        """
        owed = (
            self.session.query(
                Sale.customer_id.label("customer_id"),
                func.sum(Sale.outstanding_amount_cents).label("owed"),
            )
            .group_by(Sale.customer_id)
            .subquery()
        )
        balance_rows = (
            self.session.query(Customer.id, Customer.credit_balance_cents, func.coalesce(owed.c.owed, 0))
            .outerjoin(owed, owed.c.customer_id == Customer.id)
            .order_by(Customer.id.asc())
            .all()
        )
        balance_mismatches = [
            {"customerId": cid, "creditBalance": balance, "outstandingTotal": int(expected)}
            for cid, balance, expected in balance_rows
            if (balance or 0) != int(expected)
        ]

        moved = (
            self.session.query(
                StockMovement.product_id.label("product_id"),
                func.sum(StockMovement.quantity).label("moved"),
            )
            .group_by(StockMovement.product_id)
            .subquery()
        )
        stock_rows = (
            self.session.query(Product.id, Product.quantity, func.coalesce(moved.c.moved, 0))
            .outerjoin(moved, moved.c.product_id == Product.id)
            .order_by(Product.id.asc())
            .all()
        )
        stock_mismatches = [
            {"productId": pid, "quantity": qty, "movementTotal": int(expected)}
            for pid, qty, expected in stock_rows
            if (qty or 0) != int(expected)
        ]

        bad_sales = (
            self.session.query(Sale)
            .filter(
                (Sale.outstanding_amount_cents < 0)
                | (Sale.total_paid_cents + Sale.outstanding_amount_cents != Sale.total_amount_cents)
            )
            .order_by(Sale.id.asc())
            .all()
        )
        sale_mismatches = [
            {
                "saleId": s.id,
                "total": s.total_amount_cents,
                "paid": s.total_paid_cents,
                "outstanding": s.outstanding_amount_cents,
            }
            for s in bad_sales
        ]

        return {
            "ok": not (balance_mismatches or stock_mismatches or sale_mismatches),
            "balanceMismatches": balance_mismatches,
            "stockMismatches": stock_mismatches,
            "saleMismatches": sale_mismatches,
            "checkedAt": to_utc_z(self.clock()),
        }
