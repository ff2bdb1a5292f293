"""
supplier_ledger/services/balance.py

Balance Store primitives.

Everything here runs inside a transaction opened by run_in_transaction(); the
functions only stage changes on the session.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ..exceptions import NotFoundError
from ..extensions import db
from ..models import Procurement, Supplier, _to_decimal, clamp_balance


def _as_id(value) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def lock_supplier(supplier_id) -> Supplier:
    """Transactional read of a supplier row (FOR UPDATE where the engine supports it)."""
    supplier = None
    supplier_id = _as_id(supplier_id)
    if supplier_id is not None:
        supplier = db.session.get(Supplier, supplier_id, with_for_update=True, populate_existing=True)
    if supplier is None:
        raise NotFoundError("Supplier not found")
    return supplier


def lock_procurement(procurement_id) -> Procurement:
    procurement = None
    procurement_id = _as_id(procurement_id)
    if procurement_id is not None:
        procurement = db.session.get(
            Procurement, procurement_id, with_for_update=True, populate_existing=True
        )
    if procurement is None:
        raise NotFoundError("Procurement not found")
    return procurement


def adjust_balance(supplier: Supplier, delta) -> Decimal:
    """
    Apply `delta` to the supplier's outstanding balance, clamped at zero.

    `supplier` must have been loaded with lock_supplier() in the current
    transaction. Returns the new balance.
    """
    current = _to_decimal(supplier.total_outstanding)
    supplier.total_outstanding = clamp_balance(current + _to_decimal(delta))
    supplier.updated_at = datetime.utcnow()
    return supplier.total_outstanding
