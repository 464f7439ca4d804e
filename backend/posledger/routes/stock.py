# Overview: Flask API routes for stock receipts, counts and movement history.

"""
Stock API Routes

- POST /api/stock/add                    {"productId", "quantity", "type"?, "note"?}
- POST /api/stock/adjust                 {"productId", "newQuantity", "reason"?}
- GET  /api/stock/<product_id>/movements oldest first

Adjust sets the counted quantity; the movement records the difference.
"""

from flask import Blueprint

from . import call, json_body

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.post("/add")
def add_stock_route():
    return call("stock.add", json_body(), success_status=201)


@stock_bp.post("/adjust")
def adjust_stock_route():
    return call("stock.adjust", json_body(), success_status=201)


@stock_bp.get("/<int:product_id>/movements")
def movements_route(product_id: int):
    return call("stock.getMovements", {"productId": product_id})
