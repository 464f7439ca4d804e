# Overview: Flask API routes for customers and their credit settings.

from flask import Blueprint, request

from . import call, json_body

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.post("")
def create_customer_route():
    return call("customers.create", json_body(), success_status=201)


@customers_bp.get("")
def list_customers_route():
    return call("customers.list", {"search": request.args.get("search")})


@customers_bp.get("/<int:customer_id>")
def get_customer_route(customer_id: int):
    return call("customers.get", {"customerId": customer_id})


@customers_bp.put("/<int:customer_id>")
def update_customer_route(customer_id: int):
    """Body: {"name", "phone", "address"}, each optional; "" clears phone or address."""
    payload = json_body()
    payload = dict(payload) if isinstance(payload, dict) else {}
    payload["customerId"] = customer_id
    return call("customers.update", payload)


@customers_bp.put("/<int:customer_id>/credit")
def update_credit_route(customer_id: int):
    """
    Replace credit settings.

    Request body:
    {
        "creditLimit": 500000,     (cents, null = no limit)
        "paymentTerms": "Net 30",
        "isCreditEnabled": true    (optional)
    }
    """
    payload = dict(json_body())
    payload["customerId"] = customer_id
    return call("customers.updateCredit", payload)


@customers_bp.get("/<int:customer_id>/credit")
def get_credit_route(customer_id: int):
    return call("customers.getCredit", {"customerId": customer_id})
