"""
Shared JSON helpers for the API blueprints.

Service results are passed through unchanged; only the HTTP status is derived
from the result's error_type.
"""

from __future__ import annotations

from flask import jsonify, request

ERROR_STATUS = {
    "not_found": 404,
    "validation": 400,
    "conflict": 409,
}


def json_result(result: dict, success_status: int = 200):
    if result.get("success"):
        return jsonify(result), success_status
    return jsonify(result), ERROR_STATUS.get(result.get("error_type"), 500)


def json_body() -> dict:
    """Request JSON object, or {} when the body is empty or not an object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
