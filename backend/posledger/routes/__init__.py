# Overview: Shared helpers for the JSON blueprints; every route goes through the bridge.

from __future__ import annotations

from flask import current_app, jsonify, request

from ..bridge import Bridge
from ..extensions import db


# Error kind -> HTTP status
STATUS_BY_KIND = {
    "NotFound": 404,
    "TransactionFailed": 500,
}


def get_bridge() -> Bridge:
    return Bridge(db.session, settings=current_app.config)


def json_body() -> dict:
    """Request JSON object, or {} when the body is empty or not JSON."""
    data = request.get_json(silent=True)
    return data if data is not None else {}


def respond(result: dict, success_status: int = 200):
    if result["success"]:
        return jsonify(result), success_status
    return jsonify(result), STATUS_BY_KIND.get(result["error"], 400)


def call(channel: str, payload=None, success_status: int = 200):
    return respond(get_bridge().call(channel, payload), success_status)
