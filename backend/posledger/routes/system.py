# Overview: Flask API routes for health, the generic bridge endpoint and ledger checks.

"""
System endpoints.

- GET  /api/health            database connectivity
- POST /api/bridge/<channel>  any bridge channel; JSON body is the payload
- GET  /api/ledger/verify     running balances vs. the rows they summarize
"""

import time

from flask import Blueprint, current_app, jsonify, request

from ..extensions import db
from ..models import Customer, Product, Sale
from . import call

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        details = {
            "products": db.session.query(Product).count(),
            "customers": db.session.query(Customer).count(),
            "sales": db.session.query(Sale).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2), "details": details}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {"status": "unhealthy", "latency_ms": round(elapsed_ms, 2), "error": "Database error"}


@system_bp.get("/health")
def health_route():
    database = check_database_health()
    status = 200 if database["status"] == "healthy" else 503
    return jsonify({"status": database["status"], "checks": {"database": database}}), status


@system_bp.post("/bridge/<channel>")
def bridge_route(channel: str):
    """
    Generic bridge call.

    The JSON body is passed through as the channel payload; a body of a
    bare number works for the id lookups (e.g. payments.getCustomerDetails).
    """
    payload = request.get_json(silent=True)
    return call(channel, payload)


@system_bp.get("/ledger/verify")
def verify_ledger_route():
    return call("ledger.verify")
