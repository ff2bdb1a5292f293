"""
Supplier Ledger – Domain Models

Tables:
- suppliers           (Balance Store: total_outstanding per supplier)
- procurements        (purchase orders placed with a supplier)
- procurement_items   (ordered line items of a procurement)
- supplier_ledger     (Ledger Log: purchase / payment entries)
- audit_logs          (before/after snapshots of every mutation)

IMPORTANT:
- total_outstanding and ledger rows are only mutated through the lifecycle
  services (supplier_ledger/services), always inside one transaction.
- Supplier and Procurement carry a version counter (SQLAlchemy version_id_col)
  so concurrent writers fail with StaleDataError instead of overwriting each other.
- Ledger entries are never hard-deleted. Deleted / transferred entries are zeroed,
  flagged and keep their original magnitude in original_amount.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

from .extensions import db


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
ZERO = Decimal("0.00")


def _to_decimal(value) -> Decimal:
    """Convert Numeric/None/str/float to Decimal safely."""
    if value is None:
        return ZERO
    return Decimal(str(value))


def _money(x) -> Decimal:
    return _to_decimal(x).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def clamp_balance(value) -> Decimal:
    """Balances never go negative in this model."""
    amount = _money(value)
    return amount if amount > ZERO else ZERO


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


# ---------------------------------------------------------------------
# Suppliers
# ---------------------------------------------------------------------
class Supplier(db.Model):
    __tablename__ = "suppliers"

    id = db.Column(db.Integer, primary_key=True)

    supplier_name = db.Column(db.String(255), nullable=False, index=True)
    bank_name = db.Column(db.String(120))
    bank_account = db.Column(db.String(64))
    notes = db.Column(db.Text)

    # Running total of what is owed to this supplier (never negative)
    total_outstanding = db.Column(db.Numeric(14, 2), nullable=False, default=ZERO)

    version_id = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    procurements = db.relationship("Procurement", back_populates="supplier", lazy=True)

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        db.CheckConstraint("total_outstanding >= 0", name="ck_supplier_outstanding_nonnegative"),
    )

    # Fields a caller may set through create/update_supplier
    EDITABLE_FIELDS = ("supplier_name", "bank_name", "bank_account", "notes")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_name": self.supplier_name,
            "bank_name": self.bank_name,
            "bank_account": self.bank_account,
            "notes": self.notes,
            "total_outstanding": _money(self.total_outstanding),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Supplier {self.id} - {self.supplier_name}>"


# ---------------------------------------------------------------------
# Procurement domain
# ---------------------------------------------------------------------
class Procurement(db.Model):
    __tablename__ = "procurements"

    id = db.Column(db.Integer, primary_key=True)

    reference = db.Column(db.String(64), nullable=False, unique=True, index=True)

    supplier_id = db.Column(
        db.Integer,
        db.ForeignKey("suppliers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    # Snapshot of the supplier name when the procurement was written
    supplier_name = db.Column(db.String(255), nullable=False)

    purchase_date = db.Column(db.Date, nullable=False, index=True)

    total_quantity = db.Column(db.Integer, nullable=False, default=0)
    grand_total = db.Column(db.Numeric(14, 2), nullable=False, default=ZERO)

    # Payment
    is_paid = db.Column(db.Boolean, default=False, nullable=False, index=True)
    date_paid = db.Column(db.Date, nullable=True)
    payment_reference = db.Column(db.String(64), nullable=True)
    bank_name = db.Column(db.String(120), nullable=True)
    bank_account = db.Column(db.String(64), nullable=True)
    account_payable = db.Column(db.String(120), nullable=True)

    # Delivery
    is_received = db.Column(db.Boolean, default=False, nullable=False, index=True)
    date_delivered = db.Column(db.Date, nullable=True)

    version_id = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    supplier = db.relationship("Supplier", back_populates="procurements")

    items = db.relationship(
        "ProcurementItem",
        back_populates="procurement",
        cascade="all, delete-orphan",
        order_by="ProcurementItem.line_no",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def recalc_totals(self):
        """grand_total is always the sum of quantity x unit price over the line items."""
        total = ZERO
        quantity = 0
        for line in self.items:
            total += line.total_price
            quantity += int(line.quantity or 0)

        self.grand_total = _money(total)
        self.total_quantity = quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "reference": self.reference,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "purchase_date": _iso(self.purchase_date),
            "items": [item.to_dict() for item in self.items],
            "total_quantity": self.total_quantity,
            "grand_total": _money(self.grand_total),
            "is_paid": self.is_paid,
            "date_paid": _iso(self.date_paid),
            "payment_reference": self.payment_reference,
            "bank_name": self.bank_name,
            "bank_account": self.bank_account,
            "account_payable": self.account_payable,
            "is_received": self.is_received,
            "date_delivered": _iso(self.date_delivered),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Procurement {self.reference}>"


class ProcurementItem(db.Model):
    __tablename__ = "procurement_items"

    id = db.Column(db.Integer, primary_key=True)

    procurement_id = db.Column(
        db.Integer,
        db.ForeignKey("procurements.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    line_no = db.Column(db.Integer, nullable=False, default=1)

    manufacturer = db.Column(db.String(120), nullable=False)
    model = db.Column(db.String(120), nullable=False)
    ram = db.Column(db.String(50))
    storage = db.Column(db.String(50))
    color = db.Column(db.String(50))

    quantity = db.Column(db.Integer, nullable=False, default=1)
    dealers_price = db.Column(db.Numeric(14, 2), nullable=False, default=ZERO)
    retail_price = db.Column(db.Numeric(14, 2), nullable=True)

    procurement = db.relationship("Procurement", back_populates="items")

    @property
    def total_price(self) -> Decimal:
        if not self.quantity or not self.dealers_price:
            return ZERO
        return _money(Decimal(str(self.quantity)) * _to_decimal(self.dealers_price))

    def to_dict(self) -> dict:
        return {
            "line_no": self.line_no,
            "manufacturer": self.manufacturer,
            "model": self.model,
            "ram": self.ram,
            "storage": self.storage,
            "color": self.color,
            "quantity": self.quantity,
            "dealers_price": _money(self.dealers_price),
            "retail_price": _money(self.retail_price) if self.retail_price is not None else None,
            "total_price": self.total_price,
        }


# ---------------------------------------------------------------------
# Ledger log
# ---------------------------------------------------------------------
class LedgerEntry(db.Model):
    """
    One line of a supplier's account.

    - purchase entries carry amount_due (sort_order 1)
    - payment entries carry amount_paid (sort_order 2)
    procurement_id groups a purchase with its payment. It is deliberately not a
    foreign key: procurements are hard-deleted while their entries are kept.
    """

    __tablename__ = "supplier_ledger"

    ENTRY_PURCHASE = "purchase"
    ENTRY_PAYMENT = "payment"

    SORT_PURCHASE = 1
    SORT_PAYMENT = 2

    REASON_DELETED = "deleted"
    REASON_TRANSFERRED = "transferred"

    id = db.Column(db.Integer, primary_key=True)

    supplier_id = db.Column(
        db.Integer,
        db.ForeignKey("suppliers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    supplier_name = db.Column(db.String(255), nullable=False)

    procurement_id = db.Column(db.Integer, nullable=True, index=True)

    entry_type = db.Column(db.String(20), nullable=False, index=True)

    purchase_date = db.Column(db.Date, nullable=True)
    entry_date = db.Column(db.Date, nullable=True)

    reference = db.Column(db.String(64), nullable=True, index=True)
    description = db.Column(db.Text, nullable=True)

    amount_due = db.Column(db.Numeric(14, 2), nullable=False, default=ZERO)
    amount_paid = db.Column(db.Numeric(14, 2), nullable=False, default=ZERO)
    running_balance = db.Column(db.Numeric(14, 2), nullable=False, default=ZERO)

    sort_order = db.Column(db.Integer, nullable=False, default=SORT_PURCHASE)

    # Audit trail for zeroed entries
    is_deleted = db.Column(db.Boolean, default=False, nullable=False, index=True)
    deleted_date = db.Column(db.DateTime, nullable=True)
    original_amount = db.Column(db.Numeric(14, 2), nullable=True)
    deletion_reason = db.Column(db.String(20), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    supplier = db.relationship("Supplier", backref=db.backref("ledger_entries", lazy=True))

    __table_args__ = (
        db.CheckConstraint("entry_type in ('purchase','payment')", name="ck_supplier_ledger_entry_type"),
        db.Index("ix_supplier_ledger_supplier_procurement", "supplier_id", "procurement_id"),
    )

    @property
    def is_purchase(self) -> bool:
        return self.entry_type == self.ENTRY_PURCHASE

    @property
    def is_payment(self) -> bool:
        return self.entry_type == self.ENTRY_PAYMENT

    @property
    def is_active_purchase(self) -> bool:
        """The single purchase line that currently carries a procurement's amount."""
        return self.is_purchase and not self.is_deleted and self.deletion_reason is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "procurement_id": self.procurement_id,
            "entry_type": self.entry_type,
            "purchase_date": _iso(self.purchase_date),
            "entry_date": _iso(self.entry_date),
            "display_date": _iso(self.purchase_date if self.is_purchase else self.entry_date),
            "reference": self.reference,
            "description": self.description,
            "amount_due": _money(self.amount_due),
            "amount_paid": _money(self.amount_paid),
            "running_balance": _money(self.running_balance),
            "sort_order": self.sort_order,
            "is_deleted": self.is_deleted,
            "deleted_date": _iso(self.deleted_date),
            "original_amount": _money(self.original_amount) if self.original_amount is not None else None,
            "deletion_reason": self.deletion_reason,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<LedgerEntry {self.entry_type} {self.reference} supplier={self.supplier_id}>"


# ---------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------
class AuditLog(db.Model):
    """Before/after snapshots of ledger mutations."""

    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.Integer, nullable=False, index=True)

    action = db.Column(db.String(20), nullable=False, index=True)

    before_data = db.Column(db.Text, nullable=True)
    after_data = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
