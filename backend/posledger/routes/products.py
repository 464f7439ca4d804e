# Overview: Flask API routes for products; parses input and returns JSON responses.

from flask import Blueprint, request

from . import call, json_body

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.post("")
def create_product_route():
    """
    Create a product.

    Request body:
    {
        "name": "Rice 5kg",
        "price": 1250,          (cents)
        "quantity": 40,         (optional, opening stock)
        "type": "grocery",      (optional)
        "featured": false,      (optional)
        "rating": 4.5           (optional, 0-5)
    }
    """
    return call("products.create", json_body(), success_status=201)


@products_bp.get("")
def list_products_route():
    return call("products.list", {
        "search": request.args.get("search"),
        "type": request.args.get("type"),
    })


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    return call("products.get", {"productId": product_id})


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    """Same body as create, every field optional; quantity is ignored (use /api/stock)."""
    payload = json_body()
    payload = dict(payload) if isinstance(payload, dict) else {}
    payload["productId"] = product_id
    return call("products.update", payload)


@products_bp.delete("/<int:product_id>")
def retire_product_route(product_id: int):
    return call("products.retire", {"productId": product_id})


@products_bp.post("/bulk")
def bulk_create_route():
    """Body: {"products": [<create body>, ...]}; all rows or none are created."""
    return call("products.bulkCreate", json_body(), success_status=201)


@products_bp.put("/bulk")
def bulk_update_route():
    """Body: {"updates": [{"id": 3, "data": {"price": 900}}, ...]}; all or none."""
    return call("products.bulkUpdate", json_body())


@products_bp.post("/bulk/retire")
def bulk_retire_route():
    """Body: {"productIds": [3, 4]}."""
    return call("products.bulkRetire", json_body())
