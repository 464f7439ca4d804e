# Overview: Flask API routes for sales and inventory reports.

from flask import Blueprint, request

from . import call

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales")
def sales_report_route():
    """Query params: start, end (ISO-8601, optional)."""
    return call("reports.sales", {
        "startDate": request.args.get("start"),
        "endDate": request.args.get("end"),
    })


@reports_bp.get("/inventory")
def inventory_report_route():
    return call("reports.inventory")


@reports_bp.get("/analytics")
def analytics_route():
    """Query params: start, end (ISO-8601, optional; applies to sales figures)."""
    return call("reports.analytics", {
        "startDate": request.args.get("start"),
        "endDate": request.args.get("end"),
    })
