# Overview: Flask API routes for sales; parses input and returns JSON responses.

"""
Sales API Routes

POST /api/sales
{
    "customerId": 1,
    "lineItems": [{"productId": 3, "quantity": 2, "unitPriceCents": 1250}],
    "amountPaid": 500
}

unitPriceCents is optional (defaults to the product's price). amountPaid
is what was taken at checkout; the rest goes on the customer's account.
"""

from flask import Blueprint, request

from . import call, json_body

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
def create_sale_route():
    return call("sales.create", json_body(), success_status=201)


@sales_bp.get("")
def list_sales_route():
    return call("sales.list", {
        "customerId": request.args.get("customer_id"),
        "paymentStatus": request.args.get("payment_status"),
        "page": request.args.get("page", 1),
        "limit": request.args.get("limit", 50),
    })


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    return call("sales.get", {"saleId": sale_id})
