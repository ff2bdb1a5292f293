"""
supplier_ledger/services/procurements.py

Procurement lifecycle operations.

Every mutating operation is ONE transaction (run_in_transaction) that touches
exactly one procurement, the balance of the supplier(s) involved and the
procurement's ledger entries:

- create      : +grand_total on the supplier, new purchase entry
- update      : same supplier  -> balance += new - original, purchase entry edited in place
                                  (paid: balance rebuilt from the ledger afterwards)
                other supplier -> old -= original, new += new total,
                                  old entry zeroed as TRANSFERRED, new entry under the new supplier
- delete      : unpaid -> balance -= grand_total; paid -> balance rebuilt from the
                ledger; purchase (and payment) entries soft-deleted, procurement removed
- mark paid   : balance -= grand_total, one payment entry (no-op when already paid)
- mark received: delivery metadata only, no financial effect

IMPORTANT:
- Input is validated before the transaction starts; the unit of work re-reads
  everything it needs, so it can be safely re-run after a conflict.
- The ledger rows of a procurement are looked up inside the same transaction
  and used by identity there.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from ..audit import log_action, serialize_model
from ..exceptions import NotFoundError, ValidationError
from ..extensions import db
from ..models import ZERO, Procurement, ProcurementItem, Supplier, _money
from ..utils import generate_payment_reference, generate_procurement_reference, parse_date, parse_decimal
from . import ledger
from .balance import adjust_balance, lock_procurement, lock_supplier
from .reconstruction import rebuild_supplier_balances
from .transactions import run_in_transaction, service_operation

logger = logging.getLogger(__name__)

ITEM_TEXT_FIELDS = ("manufacturer", "model", "ram", "storage", "color")
PAYMENT_META_FIELDS = ("bank_name", "bank_account", "account_payable")


# ---------------------------------------------------------------------
# Input parsing (outside the transaction)
# ---------------------------------------------------------------------
def _parse_quantity(value, line_no: int) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"Item {line_no}: quantity must be a whole number")
    try:
        quantity = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"Item {line_no}: quantity must be a whole number") from None
    if quantity <= 0:
        raise ValidationError(f"Item {line_no}: quantity must be greater than zero")
    return quantity


def _parse_items(raw_items) -> list[dict]:
    """Validate line items into ProcurementItem keyword dicts."""
    if not raw_items or not isinstance(raw_items, (list, tuple)):
        raise ValidationError("At least one item is required")

    lines = []
    for line_no, raw in enumerate(raw_items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"Item {line_no}: invalid item")

        line = {"line_no": line_no}
        for field in ITEM_TEXT_FIELDS:
            value = raw.get(field)
            line[field] = (str(value).strip() or None) if value is not None else None
        if not line["manufacturer"] or not line["model"]:
            raise ValidationError(f"Item {line_no}: manufacturer and model are required")

        line["quantity"] = _parse_quantity(raw.get("quantity"), line_no)

        unit_price = parse_decimal(raw.get("dealers_price", raw.get("unit_price")))
        if unit_price is None or unit_price < ZERO:
            raise ValidationError(f"Item {line_no}: a valid unit price is required")
        line["dealers_price"] = _money(unit_price)

        retail_price = parse_decimal(raw.get("retail_price"))
        line["retail_price"] = _money(retail_price) if retail_price is not None else None

        lines.append(line)
    return lines


def _items_total(lines: list[dict]) -> Decimal:
    return _money(sum((Decimal(line["quantity"]) * line["dealers_price"] for line in lines), ZERO))


def _check_declared_total(data: dict, computed: Decimal) -> None:
    """A grand total sent by the caller must match the items."""
    if data.get("grand_total") in (None, ""):
        return
    declared = parse_decimal(data.get("grand_total"))
    if declared is None or _money(declared) != computed:
        raise ValidationError(
            f"Grand total {data.get('grand_total')} does not match the sum of the items ({computed})"
        )


def _parse_required_date(value, label: str) -> date:
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationError(f"A valid {label} is required (YYYY-MM-DD)")
    return parsed


def _parse_optional_date(data: dict, key: str, label: str) -> date:
    """Date from `data[key]`, today when absent; invalid input is rejected."""
    if data.get(key) in (None, ""):
        return date.today()
    return _parse_required_date(data.get(key), label)


def _text_fields(data: dict, fields) -> dict:
    values = {}
    for field in fields:
        if field in data:
            value = data[field]
            values[field] = (str(value).strip() or None) if value is not None else None
    return values


def _parse_supplier_id(value):
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise NotFoundError("Supplier not found") from None


def _apply_items(procurement: Procurement, lines: list[dict]) -> None:
    procurement.items = [ProcurementItem(**line) for line in lines]
    procurement.recalc_totals()


# ---------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------
@service_operation("creating procurement")
def create_procurement(procurement_data: dict, supplier_id) -> dict:
    """Create a procurement (always unpaid) and charge it to the supplier."""
    if not isinstance(procurement_data, dict):
        raise ValidationError("Procurement data must be an object")

    lines = _parse_items(procurement_data.get("items"))
    _check_declared_total(procurement_data, _items_total(lines))
    purchase_date = _parse_required_date(procurement_data.get("purchase_date"), "purchase date")
    meta = _text_fields(procurement_data, PAYMENT_META_FIELDS)

    def work():
        supplier = lock_supplier(supplier_id)

        procurement = Procurement(
            reference=generate_procurement_reference(),
            supplier_id=supplier.id,
            supplier_name=supplier.supplier_name,
            purchase_date=purchase_date,
            is_paid=False,
            is_received=False,
            **meta,
        )
        _apply_items(procurement, lines)
        db.session.add(procurement)
        db.session.flush()

        new_balance = adjust_balance(supplier, procurement.grand_total)
        ledger.record_purchase(supplier, procurement, new_balance)

        log_action(procurement, "CREATE", after=serialize_model(procurement))
        return procurement.id, procurement.reference, procurement.grand_total, new_balance

    procurement_id, reference, grand_total, new_balance = run_in_transaction(work)

    logger.info(
        "Procurement created",
        extra={
            "procurement_id": procurement_id,
            "supplier_id": supplier_id,
            "grand_total": str(grand_total),
            "balance": str(new_balance),
        },
    )
    return {
        "success": True,
        "procurement_id": procurement_id,
        "reference": reference,
        "message": "Procurement created successfully",
    }


# ---------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------
@service_operation("updating procurement")
def update_procurement(procurement_id, updated_data: dict, new_supplier_id=None) -> dict:
    """
    Update a procurement, keeping balances and the ledger consistent.

    new_supplier_id (optional) moves the procurement to another supplier.
    """
    if not isinstance(updated_data, dict):
        raise ValidationError("Procurement data must be an object")

    lines = None
    if "items" in updated_data:
        lines = _parse_items(updated_data.get("items"))
        _check_declared_total(updated_data, _items_total(lines))
    elif updated_data.get("grand_total") not in (None, ""):
        raise ValidationError("Grand total is derived from the items; send the items to change it")

    purchase_date = None
    if "purchase_date" in updated_data:
        purchase_date = _parse_required_date(updated_data.get("purchase_date"), "purchase date")
    meta = _text_fields(updated_data, PAYMENT_META_FIELDS)
    target_supplier_id = _parse_supplier_id(new_supplier_id)

    def work():
        procurement = lock_procurement(procurement_id)
        before = serialize_model(procurement)

        original_total = _money(procurement.grand_total)
        old_supplier = lock_supplier(procurement.supplier_id)

        supplier_changed = target_supplier_id is not None and target_supplier_id != old_supplier.id
        new_supplier = lock_supplier(target_supplier_id) if supplier_changed else old_supplier
        if supplier_changed and procurement.is_paid:
            raise ValidationError("A paid procurement cannot be moved to another supplier")

        purchase_entry = ledger.find_purchase_entry(procurement.id, supplier_id=old_supplier.id)

        if lines is not None:
            _apply_items(procurement, lines)
        if purchase_date is not None:
            procurement.purchase_date = purchase_date
        for field, value in meta.items():
            setattr(procurement, field, value)

        new_total = _money(procurement.grand_total)

        if not supplier_changed:
            new_balance = adjust_balance(old_supplier, new_total - original_total)
            if purchase_entry is None:
                logger.warning(
                    "Purchase entry missing for procurement, recreating it",
                    extra={"procurement_id": procurement.id, "supplier_id": old_supplier.id},
                )
                ledger.record_purchase(old_supplier, procurement, new_balance)
            else:
                ledger.revise_purchase(purchase_entry, procurement, new_balance)
            if procurement.is_paid:
                # Purchase and payment no longer net to zero; the ledger walk sets the balance.
                rebuild_supplier_balances(old_supplier)
        else:
            adjust_balance(old_supplier, -original_total)
            new_balance = adjust_balance(new_supplier, new_total)

            procurement.supplier_id = new_supplier.id
            procurement.supplier_name = new_supplier.supplier_name

            if purchase_entry is not None:
                ledger.mark_transferred(purchase_entry, new_supplier.supplier_name)
            ledger.record_purchase(
                new_supplier,
                procurement,
                new_balance,
                description=(
                    f"{ledger.purchase_description(procurement)} "
                    f"(Transferred from {old_supplier.supplier_name})"
                ),
            )

        db.session.flush()
        log_action(procurement, "UPDATE", before=before, after=serialize_model(procurement))
        return original_total, new_total, supplier_changed

    original_total, new_total, supplier_changed = run_in_transaction(work)
    difference = new_total - original_total

    logger.info(
        "Procurement updated",
        extra={
            "procurement_id": procurement_id,
            "grand_total_difference": str(difference),
            "supplier_changed": supplier_changed,
        },
    )
    return {
        "success": True,
        "original_grand_total": original_total,
        "new_grand_total": new_total,
        "grand_total_difference": difference,
        "supplier_changed": supplier_changed,
        "message": "Procurement updated successfully",
    }


# ---------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------
@service_operation("deleting procurement")
def delete_procurement(procurement_id) -> dict:
    """
    Delete a procurement and reverse its effect on the supplier's account.

    The procurement row is removed; its ledger entries are kept, zeroed and
    flagged as deleted.
    """

    def work():
        procurement = lock_procurement(procurement_id)
        supplier = lock_supplier(procurement.supplier_id)

        was_paid = bool(procurement.is_paid)
        grand_total = _money(procurement.grand_total)
        snapshot = serialize_model(procurement)

        purchase_entry = ledger.find_purchase_entry(procurement.id, supplier_id=supplier.id)
        payment_entry = ledger.find_payment_entry(procurement.id) if was_paid else None

        if purchase_entry is not None:
            ledger.soft_delete(purchase_entry, label="Original")
        if payment_entry is not None:
            ledger.soft_delete(payment_entry, label="Original Payment")

        if was_paid:
            # Both entries are zeroed; the balance follows from the remaining ledger.
            _, _, final_balance, _ = rebuild_supplier_balances(supplier)
        else:
            final_balance = adjust_balance(supplier, -grand_total)

        log_action(procurement, "DELETE", before=snapshot)
        db.session.delete(procurement)
        db.session.flush()

        return {
            "grand_total": grand_total,
            "supplier_id": supplier.id,
            "supplier_name": supplier.supplier_name,
            "reference": snapshot["reference"],
            "was_paid": was_paid,
            "final_balance": final_balance,
        }

    outcome = run_in_transaction(work)

    logger.info(
        "Procurement deleted",
        extra={
            "procurement_id": procurement_id,
            "supplier_id": outcome["supplier_id"],
            "was_paid": outcome["was_paid"],
            "balance": str(outcome["final_balance"]),
        },
    )
    return {"success": True, "message": "Procurement deleted successfully", **outcome}


# ---------------------------------------------------------------------
# Payment / delivery
# ---------------------------------------------------------------------
@service_operation("updating procurement payment status")
def update_procurement_payment_status(procurement_id, payment_data: dict | None = None) -> dict:
    """
    Mark a procurement as paid.

    payment_data: date_paid (default today), payment_reference (generated as
    PAY-<epoch-ms>-<NNN> when empty), bank_name, bank_account, account_payable.
    Calling it for an already-paid procurement changes nothing.
    """
    payment_data = payment_data or {}
    if not isinstance(payment_data, dict):
        raise ValidationError("Payment data must be an object")
    if payment_data.get("is_paid") is False:
        raise ValidationError("A recorded payment cannot be reverted; delete the procurement instead")

    date_paid = _parse_optional_date(payment_data, "date_paid", "payment date")
    requested_reference = (str(payment_data.get("payment_reference") or "")).strip() or None
    meta = _text_fields(payment_data, PAYMENT_META_FIELDS)

    def work():
        procurement = lock_procurement(procurement_id)
        if procurement.is_paid:
            return procurement.id, procurement.payment_reference, True

        supplier = lock_supplier(procurement.supplier_id)
        before = serialize_model(procurement)

        new_balance = adjust_balance(supplier, -_money(procurement.grand_total))
        payment_reference = requested_reference or generate_payment_reference()

        procurement.is_paid = True
        procurement.date_paid = date_paid
        procurement.payment_reference = payment_reference
        for field, value in meta.items():
            setattr(procurement, field, value)

        ledger.record_payment(procurement, new_balance, reference=payment_reference, entry_date=date_paid)

        db.session.flush()
        log_action(procurement, "PAYMENT", before=before, after=serialize_model(procurement))
        return procurement.id, payment_reference, False

    paid_id, payment_reference, already_paid = run_in_transaction(work)

    if already_paid:
        logger.info("Procurement already paid, nothing to do", extra={"procurement_id": paid_id})
    else:
        logger.info(
            "Procurement marked paid",
            extra={"procurement_id": paid_id, "payment_reference": payment_reference},
        )
    return {
        "success": True,
        "procurement_id": paid_id,
        "payment_reference": payment_reference,
        "already_paid": already_paid,
        "message": "Procurement payment status updated successfully",
    }


@service_operation("updating procurement delivery status")
def update_procurement_delivery_status(procurement_id, delivery_data: dict | None = None) -> dict:
    """Mark a procurement as received. No balance or ledger effect."""
    delivery_data = delivery_data or {}
    if not isinstance(delivery_data, dict):
        raise ValidationError("Delivery data must be an object")
    date_delivered = _parse_optional_date(delivery_data, "date_delivered", "delivery date")

    def work():
        procurement = lock_procurement(procurement_id)
        if procurement.is_received:
            return procurement.id, True

        before = serialize_model(procurement)
        procurement.is_received = True
        procurement.date_delivered = date_delivered
        db.session.flush()
        log_action(procurement, "DELIVERY", before=before, after=serialize_model(procurement))
        return procurement.id, False

    received_id, already_received = run_in_transaction(work)
    return {
        "success": True,
        "procurement_id": received_id,
        "already_received": already_received,
        "message": "Procurement delivery status updated successfully",
    }


# ---------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------
@service_operation("fetching procurement")
def get_procurement_by_id(procurement_id) -> dict:
    procurement = db.session.get(Procurement, procurement_id)
    if procurement is None:
        raise NotFoundError("Procurement not found")
    return {"success": True, "procurement": procurement.to_dict()}


@service_operation("fetching procurements")
def get_procurements_by_supplier(supplier_id) -> dict:
    if db.session.get(Supplier, supplier_id) is None:
        raise NotFoundError("Supplier not found")

    procurements = (
        Procurement.query.filter_by(supplier_id=supplier_id)
        .order_by(Procurement.purchase_date.desc(), Procurement.id.desc())
        .all()
    )
    return {"success": True, "procurements": [p.to_dict() for p in procurements]}
