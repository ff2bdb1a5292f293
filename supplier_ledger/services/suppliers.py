"""
supplier_ledger/services/suppliers.py

Supplier master-data operations.

total_outstanding is owned by the lifecycle services: it starts at zero here
and cannot be written through update_supplier().
"""

from __future__ import annotations

import logging

from ..audit import log_action, serialize_model
from ..exceptions import NotFoundError, ValidationError
from ..extensions import db
from ..models import ZERO, Supplier
from .transactions import run_in_transaction, service_operation

logger = logging.getLogger(__name__)


def _clean_supplier_fields(data: dict, *, partial: bool) -> dict:
    """Keep editable fields only, strip text, validate the name."""
    if not isinstance(data, dict):
        raise ValidationError("Supplier data must be an object")

    if "total_outstanding" in data:
        raise ValidationError("total_outstanding is maintained by the ledger and cannot be set directly")

    cleaned = {}
    for field in Supplier.EDITABLE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        cleaned[field] = (str(value).strip() or None) if value is not None else None

    if not partial or "supplier_name" in cleaned:
        if not cleaned.get("supplier_name"):
            raise ValidationError("Supplier name is required")

    return cleaned


@service_operation("creating supplier")
def create_supplier(supplier_data: dict) -> dict:
    fields = _clean_supplier_fields(supplier_data, partial=False)

    def work():
        supplier = Supplier(total_outstanding=ZERO, **fields)
        db.session.add(supplier)
        db.session.flush()
        log_action(supplier, "CREATE", after=serialize_model(supplier))
        return supplier.id

    supplier_id = run_in_transaction(work)
    logger.info("Supplier created", extra={"supplier_id": supplier_id})
    return {"success": True, "id": supplier_id, "message": "Supplier created successfully"}


@service_operation("updating supplier")
def update_supplier(supplier_id, update_data: dict) -> dict:
    fields = _clean_supplier_fields(update_data, partial=True)

    def work():
        supplier = db.session.get(Supplier, supplier_id)
        if supplier is None:
            raise NotFoundError("Supplier not found")

        before = serialize_model(supplier)
        for field, value in fields.items():
            setattr(supplier, field, value)
        db.session.flush()
        log_action(supplier, "UPDATE", before=before, after=serialize_model(supplier))

    run_in_transaction(work)
    logger.info("Supplier updated", extra={"supplier_id": supplier_id, "fields": sorted(fields)})
    return {"success": True, "message": "Supplier updated successfully"}


@service_operation("fetching suppliers")
def get_all_suppliers() -> dict:
    suppliers = Supplier.query.order_by(Supplier.supplier_name.asc(), Supplier.id.asc()).all()
    return {"success": True, "suppliers": [s.to_dict() for s in suppliers]}


@service_operation("fetching supplier")
def get_supplier_by_id(supplier_id) -> dict:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError("Supplier not found")
    return {"success": True, "supplier": supplier.to_dict()}
