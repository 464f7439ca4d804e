# Overview: Flask API routes for customer payments and outstanding balances.

"""
Payment API Routes

- POST /api/payments                         apply a payment, oldest sale first
- GET  /api/payments/outstanding             one row per customer who owes money
- GET  /api/payments/customers/<id>          detail, aging per sale, history
- GET  /api/payments/history                 payment records, newest first
- GET  /api/payments/report                  aging breakdown, risk, top debtors

POST body:
{
    "customerId": 1,
    "amount": 10000,
    "paymentMethod": "cash",
    "notes": "Paid at counter",     (optional)
    "referenceNumber": "CHK-1042"   (optional)
}

A payment larger than what the customer owes is applied up to the
balance; the rest is returned as remainingCredit and not stored.
"""

from flask import Blueprint, request

from . import call, json_body

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


def _outstanding_filters() -> dict:
    return {
        "searchTerm": request.args.get("search"),
        "agingFilter": request.args.get("aging"),
        "customerId": request.args.get("customer_id"),
        "page": request.args.get("page"),
        "limit": request.args.get("limit"),
    }


@payments_bp.post("")
def process_payment_route():
    return call("payments.process", json_body(), success_status=201)


@payments_bp.get("/outstanding")
def outstanding_route():
    return call("payments.getOutstanding", _outstanding_filters())


@payments_bp.get("/customers/<int:customer_id>")
def customer_detail_route(customer_id: int):
    return call("payments.getCustomerDetails", {"customerId": customer_id})


@payments_bp.get("/history")
def history_route():
    return call("payments.getHistory", {
        "customerId": request.args.get("customer_id"),
        "limit": request.args.get("limit", 100),
    })


@payments_bp.get("/report")
def report_route():
    filters = _outstanding_filters()
    filters.pop("page")
    filters.pop("limit")
    return call("payments.getReport", filters)
