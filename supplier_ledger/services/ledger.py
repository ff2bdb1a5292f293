"""
supplier_ledger/services/ledger.py

Ledger Log primitives.

Entries are created and adjusted here; they are never removed. A procurement
owns exactly one active purchase entry and at most one payment entry, joined
by procurement_id. These helpers stage changes on the current session and are
only called from inside a lifecycle transaction.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from ..extensions import db
from ..models import ZERO, LedgerEntry, Procurement, Supplier, _money
from ..utils import format_amount


def _annotate(description: str | None, note: str) -> str:
    return f"{description} - {note}" if description else note


def purchase_description(procurement: Procurement) -> str:
    return f"Purchase order - {len(procurement.items)} items"


def record_purchase(
    supplier: Supplier,
    procurement: Procurement,
    running_balance: Decimal,
    *,
    description: str | None = None,
) -> LedgerEntry:
    """Stage a purchase entry for the procurement's full grand total."""
    entry = LedgerEntry(
        supplier_id=supplier.id,
        supplier_name=supplier.supplier_name,
        procurement_id=procurement.id,
        entry_type=LedgerEntry.ENTRY_PURCHASE,
        purchase_date=procurement.purchase_date,
        entry_date=procurement.purchase_date,
        reference=procurement.reference,
        amount_due=_money(procurement.grand_total),
        amount_paid=ZERO,
        running_balance=running_balance,
        description=description or purchase_description(procurement),
        sort_order=LedgerEntry.SORT_PURCHASE,
    )
    db.session.add(entry)
    return entry


def record_payment(
    procurement: Procurement,
    running_balance: Decimal,
    *,
    reference: str,
    entry_date: date,
) -> LedgerEntry:
    """Stage the payment entry settling the procurement's grand total."""
    entry = LedgerEntry(
        supplier_id=procurement.supplier_id,
        supplier_name=procurement.supplier_name,
        procurement_id=procurement.id,
        entry_type=LedgerEntry.ENTRY_PAYMENT,
        # purchase_date is kept so the payment sorts with its purchase
        purchase_date=procurement.purchase_date,
        entry_date=entry_date,
        reference=reference,
        amount_due=ZERO,
        amount_paid=_money(procurement.grand_total),
        running_balance=running_balance,
        description=f"Payment for procurement {procurement.reference}",
        sort_order=LedgerEntry.SORT_PAYMENT,
    )
    db.session.add(entry)
    return entry


def find_purchase_entry(procurement_id, supplier_id=None) -> LedgerEntry | None:
    """The procurement's active purchase entry (optionally restricted to one supplier)."""
    q = LedgerEntry.query.filter(
        LedgerEntry.procurement_id == procurement_id,
        LedgerEntry.entry_type == LedgerEntry.ENTRY_PURCHASE,
        LedgerEntry.is_deleted.is_(False),
        LedgerEntry.deletion_reason.is_(None),
    )
    if supplier_id is not None:
        q = q.filter(LedgerEntry.supplier_id == supplier_id)
    return q.order_by(LedgerEntry.id.desc()).first()


def find_payment_entry(procurement_id) -> LedgerEntry | None:
    return (
        LedgerEntry.query.filter(
            LedgerEntry.procurement_id == procurement_id,
            LedgerEntry.entry_type == LedgerEntry.ENTRY_PAYMENT,
            LedgerEntry.is_deleted.is_(False),
        )
        .order_by(LedgerEntry.id.desc())
        .first()
    )


def revise_purchase(entry: LedgerEntry, procurement: Procurement, running_balance: Decimal) -> LedgerEntry:
    """Edit the purchase entry in place after the procurement changed."""
    entry.amount_due = _money(procurement.grand_total)
    entry.running_balance = running_balance
    entry.purchase_date = procurement.purchase_date
    entry.entry_date = procurement.purchase_date
    entry.description = f"{purchase_description(procurement)} (Updated)"
    return entry


def mark_transferred(entry: LedgerEntry, new_supplier_name: str) -> LedgerEntry:
    """
    Zero a purchase entry whose procurement moved to another supplier.

    The entry stays visible (is_deleted remains False) so the old supplier's
    account still shows the purchase and where it went.
    """
    entry.original_amount = _money(entry.amount_due)
    entry.amount_due = ZERO
    entry.deletion_reason = LedgerEntry.REASON_TRANSFERRED
    entry.description = _annotate(entry.description, f"TRANSFERRED TO {new_supplier_name}")
    return entry


def soft_delete(entry: LedgerEntry, *, label: str = "Original") -> LedgerEntry:
    """
    Zero an entry of a deleted procurement, keeping its original amount.

    The amount is recorded both in original_amount and in the description,
    e.g. "Purchase order - 2 items - DELETED (Original: ₱1,000.00)".
    """
    original = _money(entry.amount_paid if entry.is_payment else entry.amount_due)

    if entry.is_payment:
        entry.amount_paid = ZERO
    else:
        entry.amount_due = ZERO

    entry.original_amount = original
    entry.is_deleted = True
    entry.deleted_date = datetime.utcnow()
    entry.deletion_reason = LedgerEntry.REASON_DELETED
    entry.description = _annotate(entry.description, f"DELETED ({label}: {format_amount(original)})")
    return entry
