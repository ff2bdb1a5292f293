"""
supplier_ledger/blueprints/suppliers/routes.py

Supplier routes: master data, the supplier's procurements and its ledger.

All business rules live in supplier_ledger.services; routes only translate
HTTP <-> service calls.
"""

from __future__ import annotations

from flask import Blueprint

from ... import services
from ..responses import json_body, json_result

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/suppliers")


# ----------------------------------------------------------------------
# Master data
# ----------------------------------------------------------------------
@suppliers_bp.route("/", methods=["GET"])
def list_suppliers():
    return json_result(services.get_all_suppliers())


@suppliers_bp.route("/", methods=["POST"])
def create_supplier():
    return json_result(services.create_supplier(json_body()), success_status=201)


@suppliers_bp.route("/<int:supplier_id>", methods=["GET"])
def get_supplier(supplier_id: int):
    return json_result(services.get_supplier_by_id(supplier_id))


@suppliers_bp.route("/<int:supplier_id>", methods=["PATCH", "PUT"])
def update_supplier(supplier_id: int):
    return json_result(services.update_supplier(supplier_id, json_body()))


@suppliers_bp.route("/<int:supplier_id>/procurements", methods=["GET"])
def supplier_procurements(supplier_id: int):
    return json_result(services.get_procurements_by_supplier(supplier_id))


# ----------------------------------------------------------------------
# Ledger
# ----------------------------------------------------------------------
@suppliers_bp.route("/<int:supplier_id>/ledger", methods=["GET"])
def supplier_ledger(supplier_id: int):
    return json_result(services.get_supplier_ledger(supplier_id))


@suppliers_bp.route("/<int:supplier_id>/ledger/summary", methods=["GET"])
def supplier_ledger_summary(supplier_id: int):
    return json_result(services.get_supplier_ledger_summary(supplier_id))


@suppliers_bp.route("/<int:supplier_id>/ledger/recalculate", methods=["POST"])
def recalculate_balance(supplier_id: int):
    return json_result(services.recalculate_supplier_balance(supplier_id))


@suppliers_bp.route("/<int:supplier_id>/ledger/diagnose", methods=["GET"])
def diagnose_ledger(supplier_id: int):
    return json_result(services.diagnose_supplier_ledger(supplier_id))
