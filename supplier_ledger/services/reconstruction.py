"""
supplier_ledger/services/reconstruction.py

Ledger Reconstruction and reporting.

The running balance shown for a ledger row is never taken from the row itself:
it is recomputed on every read from the raw entries, in this order:

1. entries are grouped by procurement_id (entries without one stand alone)
2. inside a group: sort_order ascending (purchase before payment)
3. groups: earliest created_at ascending, then reference, then id
4. standalone entries follow the groups, oldest first
5. walk: + amount_due of non-deleted purchases, - amount_paid of payments,
   clamped at zero after every step

recalculate_supplier_balance() writes the recomputed values back (entries and
supplier.total_outstanding); diagnose_supplier_ledger() only reports drift.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from flask import current_app

from ..audit import log_action
from ..exceptions import NotFoundError
from ..extensions import db
from ..models import ZERO, LedgerEntry, Supplier, _money, _to_decimal, clamp_balance
from .balance import lock_supplier
from .transactions import run_in_transaction, service_operation

logger = logging.getLogger(__name__)


def _created_key(entry: LedgerEntry):
    return (entry.created_at or datetime.min, entry.id or 0)


def _group_key(members: list[LedgerEntry]):
    earliest = min(members, key=_created_key)
    return (earliest.created_at or datetime.min, members[0].reference or "", earliest.id or 0)


def order_ledger_entries(entries: Iterable[LedgerEntry]) -> list[LedgerEntry]:
    """Chronological display order: procurement groups oldest first, standalone entries last."""
    groups: dict[int, list[LedgerEntry]] = {}
    standalone: list[LedgerEntry] = []

    for entry in entries:
        if entry.procurement_id is None:
            standalone.append(entry)
        else:
            groups.setdefault(entry.procurement_id, []).append(entry)

    ordered_groups = []
    for members in groups.values():
        members.sort(key=lambda e: (e.sort_order or 0,) + _created_key(e))
        ordered_groups.append(members)
    ordered_groups.sort(key=_group_key)

    ordered = [entry for members in ordered_groups for entry in members]
    ordered.extend(sorted(standalone, key=_created_key))
    return ordered


def compute_running_balances(ordered: Iterable[LedgerEntry]) -> list[tuple[LedgerEntry, Decimal]]:
    """Pair each entry with the clamped balance after it."""
    balance = ZERO
    rows = []
    for entry in ordered:
        if entry.is_purchase and not entry.is_deleted:
            balance += _to_decimal(entry.amount_due)
        elif entry.is_payment:
            balance -= _to_decimal(entry.amount_paid)
        balance = clamp_balance(balance)
        rows.append((entry, balance))
    return rows


def reconstruct_ledger(supplier_id) -> list[tuple[LedgerEntry, Decimal]]:
    entries = LedgerEntry.query.filter_by(supplier_id=supplier_id).all()
    return compute_running_balances(order_ledger_entries(entries))


def _totals(rows) -> tuple[Decimal, Decimal]:
    total_due = ZERO
    total_paid = ZERO
    for entry, _ in rows:
        if entry.is_purchase and not entry.is_deleted:
            total_due += _to_decimal(entry.amount_due)
        elif entry.is_payment:
            total_paid += _to_decimal(entry.amount_paid)
    return _money(total_due), _money(total_paid)


def _final_balance(rows) -> Decimal:
    return rows[-1][1] if rows else ZERO


def rebuild_supplier_balances(supplier: Supplier) -> tuple[Decimal, Decimal, Decimal, int]:
    """
    Write the reconstructed running balances and final balance back.

    Stages changes in the caller's transaction; `supplier` must be locked.
    Returns (total_due, total_paid, final_balance, entries_updated).
    """
    rows = reconstruct_ledger(supplier.id)
    total_due, total_paid = _totals(rows)

    updated = 0
    for entry, balance in rows:
        if _money(entry.running_balance) != balance:
            entry.running_balance = balance
            updated += 1

    final_balance = _final_balance(rows)
    supplier.total_outstanding = final_balance
    supplier.updated_at = datetime.utcnow()
    return total_due, total_paid, final_balance, updated


def _require_supplier(supplier_id) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError("Supplier not found")
    return supplier


def _row_dict(entry: LedgerEntry, balance: Decimal) -> dict:
    row = entry.to_dict()
    row["stored_running_balance"] = row["running_balance"]
    row["running_balance"] = balance
    return row


# ---------------------------------------------------------------------
# Public reads
# ---------------------------------------------------------------------
@service_operation("fetching supplier ledger")
def get_supplier_ledger(supplier_id) -> dict:
    _require_supplier(supplier_id)
    rows = reconstruct_ledger(supplier_id)
    return {"success": True, "ledger_entries": [_row_dict(entry, balance) for entry, balance in rows]}


@service_operation("generating ledger summary")
def get_supplier_ledger_summary(supplier_id) -> dict:
    """
    Totals and dates over the reconstructed ledger.

    total_transactions counts the entries that still carry an amount for this
    supplier: deleted entries and purchases transferred away are left out, the
    same entries that never set last_purchase_date.
    """
    _require_supplier(supplier_id)
    rows = reconstruct_ledger(supplier_id)
    total_due, total_payments = _totals(rows)

    last_purchase_date = None
    last_payment_date = None
    transactions = 0
    for entry, _ in rows:
        if entry.is_deleted or entry.deletion_reason is not None:
            continue
        transactions += 1
        if entry.is_purchase:
            if entry.purchase_date and (last_purchase_date is None or entry.purchase_date > last_purchase_date):
                last_purchase_date = entry.purchase_date
        elif entry.is_payment:
            if entry.entry_date and (last_payment_date is None or entry.entry_date > last_payment_date):
                last_payment_date = entry.entry_date

    summary = {
        "total_due": total_due,
        "total_payments": total_payments,
        "outstanding_balance": _final_balance(rows),
        "total_transactions": transactions,
        "last_purchase_date": last_purchase_date.isoformat() if last_purchase_date else None,
        "last_payment_date": last_payment_date.isoformat() if last_payment_date else None,
    }
    return {"success": True, "summary": summary}


@service_operation("diagnosing supplier ledger")
def diagnose_supplier_ledger(supplier_id) -> dict:
    """Read-only drift report: stored running balances vs recomputed ones."""
    supplier = _require_supplier(supplier_id)
    tolerance = current_app.config.get("LEDGER_DRIFT_TOLERANCE", Decimal("0.01"))

    rows = reconstruct_ledger(supplier_id)
    drifted = []
    for entry, balance in rows:
        stored = _money(entry.running_balance)
        if abs(stored - balance) > tolerance:
            drifted.append(
                {
                    "id": entry.id,
                    "entry_type": entry.entry_type,
                    "reference": entry.reference,
                    "procurement_id": entry.procurement_id,
                    "is_deleted": entry.is_deleted,
                    "stored_running_balance": stored,
                    "computed_running_balance": balance,
                    "difference": stored - balance,
                }
            )

    computed_balance = _final_balance(rows)
    stored_balance = _money(supplier.total_outstanding)
    is_consistent = not drifted and abs(stored_balance - computed_balance) <= tolerance

    if not is_consistent:
        logger.warning(
            "Ledger drift detected",
            extra={
                "supplier_id": supplier.id,
                "drifted_entries": len(drifted),
                "stored_balance": str(stored_balance),
                "computed_balance": str(computed_balance),
            },
        )
    return {
        "success": True,
        "supplier_id": supplier.id,
        "total_entries": len(rows),
        "drifted_entries": drifted,
        "computed_balance": computed_balance,
        "stored_balance": stored_balance,
        "is_consistent": is_consistent,
    }


# ---------------------------------------------------------------------
# Repair
# ---------------------------------------------------------------------
@service_operation("recalculating supplier balance")
def recalculate_supplier_balance(supplier_id) -> dict:
    """Rewrite every drifted running balance and the supplier total from the ledger."""

    def work():
        supplier = lock_supplier(supplier_id)
        before = {"total_outstanding": str(_money(supplier.total_outstanding))}
        total_due, total_paid, final_balance, updated = rebuild_supplier_balances(supplier)

        db.session.flush()
        log_action(
            supplier,
            "RECALCULATE",
            before=before,
            after={"total_outstanding": str(final_balance), "entries_updated": updated},
        )
        return total_due, total_paid, final_balance, updated

    total_due, total_paid, final_balance, updated = run_in_transaction(work)

    logger.info(
        "Supplier balance recalculated",
        extra={"supplier_id": supplier_id, "balance": str(final_balance), "entries_updated": updated},
    )
    return {
        "success": True,
        "total_due": total_due,
        "total_paid": total_paid,
        "final_balance": final_balance,
        "entries_updated": updated,
        "message": "Supplier balance recalculated successfully",
    }
