"""
supplier_ledger/blueprints/procurements/routes.py

Procurement routes (JSON).

- POST   /procurements/                 create (body: supplier_id + procurement data)
- GET    /procurements/<id>             read
- PATCH  /procurements/<id>             update (optional supplier_id moves it to another supplier)
- DELETE /procurements/<id>             delete, reversing its ledger effect
- POST   /procurements/<id>/payment     mark paid
- POST   /procurements/<id>/delivery    mark received
"""

from __future__ import annotations

from flask import Blueprint

from ... import services
from ..responses import json_body, json_result

procurements_bp = Blueprint("procurements", __name__, url_prefix="/procurements")


@procurements_bp.route("/", methods=["POST"])
def create_procurement():
    data = json_body()
    supplier_id = data.pop("supplier_id", None)
    return json_result(services.create_procurement(data, supplier_id), success_status=201)


@procurements_bp.route("/<int:procurement_id>", methods=["GET"])
def get_procurement(procurement_id: int):
    return json_result(services.get_procurement_by_id(procurement_id))


@procurements_bp.route("/<int:procurement_id>", methods=["PATCH", "PUT"])
def update_procurement(procurement_id: int):
    data = json_body()
    new_supplier_id = data.pop("supplier_id", None)
    return json_result(services.update_procurement(procurement_id, data, new_supplier_id))


@procurements_bp.route("/<int:procurement_id>", methods=["DELETE"])
def delete_procurement(procurement_id: int):
    return json_result(services.delete_procurement(procurement_id))


@procurements_bp.route("/<int:procurement_id>/payment", methods=["POST"])
def mark_paid(procurement_id: int):
    return json_result(services.update_procurement_payment_status(procurement_id, json_body()))


@procurements_bp.route("/<int:procurement_id>/delivery", methods=["POST"])
def mark_received(procurement_id: int):
    return json_result(services.update_procurement_delivery_status(procurement_id, json_body()))
