from datetime import date, datetime
from decimal import Decimal

from supplier_ledger import services
from supplier_ledger.models import LedgerEntry, Supplier
from supplier_ledger.services.reconstruction import compute_running_balances, order_ledger_entries


def _entry(entry_id, entry_type, procurement_id, created_at, *, due="0", paid="0", reference=None,
           is_deleted=False):
    return LedgerEntry(
        id=entry_id,
        supplier_id=1,
        supplier_name="Vivo",
        procurement_id=procurement_id,
        entry_type=entry_type,
        reference=reference,
        amount_due=Decimal(due),
        amount_paid=Decimal(paid),
        sort_order=LedgerEntry.SORT_PAYMENT if entry_type == LedgerEntry.ENTRY_PAYMENT else LedgerEntry.SORT_PURCHASE,
        is_deleted=is_deleted,
        created_at=created_at,
    )


def _set_created_at(db_session, procurement_id, when, entry_type=LedgerEntry.ENTRY_PURCHASE):
    for entry in LedgerEntry.query.filter_by(procurement_id=procurement_id, entry_type=entry_type):
        entry.created_at = when
    db_session.commit()


# ---------------------------------------------------------------------
# Ordering and running balance (no database needed)
# ---------------------------------------------------------------------
def test_purchase_precedes_its_payment_regardless_of_timestamps():
    payment = _entry(2, LedgerEntry.ENTRY_PAYMENT, 10, datetime(2025, 1, 1, 9), paid="1000")
    purchase = _entry(1, LedgerEntry.ENTRY_PURCHASE, 10, datetime(2025, 1, 1, 10), due="1000")

    ordered = order_ledger_entries([payment, purchase])

    assert ordered == [purchase, payment]


def test_groups_ordered_by_earliest_member():
    p1 = _entry(1, LedgerEntry.ENTRY_PURCHASE, 10, datetime(2025, 1, 1), due="1000")
    p2 = _entry(2, LedgerEntry.ENTRY_PURCHASE, 20, datetime(2025, 1, 2), due="500")
    pay1 = _entry(3, LedgerEntry.ENTRY_PAYMENT, 10, datetime(2025, 1, 5), paid="1000")

    ordered = order_ledger_entries([p2, pay1, p1])

    assert ordered == [p1, pay1, p2]
    balances = [balance for _, balance in compute_running_balances(ordered)]
    assert balances == [Decimal("1000.00"), Decimal("0.00"), Decimal("500.00")]


def test_group_ties_fall_back_to_reference():
    same_time = datetime(2025, 1, 1, 12)
    b = _entry(1, LedgerEntry.ENTRY_PURCHASE, 10, same_time, due="1", reference="PROC-2")
    a = _entry(2, LedgerEntry.ENTRY_PURCHASE, 20, same_time, due="1", reference="PROC-1")

    assert order_ledger_entries([b, a]) == [a, b]


def test_standalone_entries_come_last_and_missing_timestamps_sort_first():
    standalone = _entry(1, LedgerEntry.ENTRY_PAYMENT, None, datetime(2020, 1, 1), paid="50")
    grouped = _entry(2, LedgerEntry.ENTRY_PURCHASE, 10, datetime(2025, 1, 1), due="100")
    undated = _entry(3, LedgerEntry.ENTRY_PURCHASE, 20, None, due="10")

    ordered = order_ledger_entries([standalone, grouped, undated])

    assert ordered == [undated, grouped, standalone]


def test_running_balance_never_negative():
    pay = _entry(1, LedgerEntry.ENTRY_PAYMENT, 10, datetime(2025, 1, 1), paid="300")
    deleted = _entry(2, LedgerEntry.ENTRY_PURCHASE, 20, datetime(2025, 1, 2), due="999", is_deleted=True)
    buy = _entry(3, LedgerEntry.ENTRY_PURCHASE, 30, datetime(2025, 1, 3), due="200")

    balances = [balance for _, balance in compute_running_balances([pay, deleted, buy])]

    assert balances == [Decimal("0.00"), Decimal("0.00"), Decimal("200.00")]


# ---------------------------------------------------------------------
# Supplier ledger reads
# ---------------------------------------------------------------------
def test_ledger_is_reconstructed_in_procurement_order(app, db_session, make_supplier, make_procurement):
    supplier_id = make_supplier()
    p1 = make_procurement(supplier_id, (1, "1000"))
    p2 = make_procurement(supplier_id, (1, "500"))
    _set_created_at(db_session, p1, datetime(2025, 1, 1, 10))
    _set_created_at(db_session, p2, datetime(2025, 1, 2, 10))
    services.update_procurement_payment_status(p1, {"date_paid": "2025-01-10"})

    result = services.get_supplier_ledger(supplier_id)

    rows = result["ledger_entries"]
    assert [(r["procurement_id"], r["entry_type"]) for r in rows] == [
        (p1, "purchase"),
        (p1, "payment"),
        (p2, "purchase"),
    ]
    assert [r["running_balance"] for r in rows] == [Decimal("1000.00"), Decimal("0.00"), Decimal("500.00")]
    assert rows[1]["display_date"] == "2025-01-10"


def test_ledger_shows_computed_not_stored_balance(app, db_session, make_supplier, make_procurement,
                                                  entries_for):
    supplier_id = make_supplier()
    procurement_id = make_procurement(supplier_id, (1, "1000"))
    (entry,) = entries_for(procurement_id)
    entry.running_balance = Decimal("12345.00")
    db_session.commit()

    (row,) = services.get_supplier_ledger(supplier_id)["ledger_entries"]

    assert row["running_balance"] == Decimal("1000.00")
    assert row["stored_running_balance"] == Decimal("12345.00")


def test_ledger_for_unknown_supplier(app):
    assert services.get_supplier_ledger(999)["error_type"] == "not_found"
    assert services.get_supplier_ledger_summary(999)["error_type"] == "not_found"


def test_ledger_keeps_deleted_and_transferred_history(app, make_supplier, make_procurement, procurement_data):
    old_id = make_supplier("Realme")
    new_id = make_supplier("Realme PH")
    moved = make_procurement(old_id, (1, "700"))
    removed = make_procurement(old_id, (1, "300"))
    services.update_procurement(moved, procurement_data((1, "700")), new_id)
    services.delete_procurement(removed)

    rows = services.get_supplier_ledger(old_id)["ledger_entries"]

    assert len(rows) == 2
    assert {r["deletion_reason"] for r in rows} == {"transferred", "deleted"}
    assert all(r["running_balance"] == Decimal("0.00") for r in rows)


def test_summary(app, db_session, make_supplier, make_procurement):
    supplier_id = make_supplier()
    p1 = make_procurement(supplier_id, (1, "1000"), purchase_date="2025-01-05")
    make_procurement(supplier_id, (2, "250"), purchase_date="2025-02-01")
    p3 = make_procurement(supplier_id, (1, "80"), purchase_date="2025-03-01")
    services.update_procurement_payment_status(p1, {"date_paid": "2025-02-10"})
    services.delete_procurement(p3)

    summary = services.get_supplier_ledger_summary(supplier_id)["summary"]

    assert summary["total_due"] == Decimal("1500.00")
    assert summary["total_payments"] == Decimal("1000.00")
    assert summary["outstanding_balance"] == Decimal("500.00")
    assert summary["total_transactions"] == 3
    assert summary["last_purchase_date"] == "2025-02-01"
    assert summary["last_payment_date"] == "2025-02-10"
    assert summary["outstanding_balance"] == db_session.get(Supplier, supplier_id).total_outstanding


def test_empty_summary(app, make_supplier):
    summary = services.get_supplier_ledger_summary(make_supplier())["summary"]

    assert summary == {
        "total_due": Decimal("0.00"),
        "total_payments": Decimal("0.00"),
        "outstanding_balance": Decimal("0.00"),
        "total_transactions": 0,
        "last_purchase_date": None,
        "last_payment_date": None,
    }


# ---------------------------------------------------------------------
# Conservation across a sequence of operations
# ---------------------------------------------------------------------
def test_stored_balance_matches_reconstruction_after_mixed_operations(app, make_supplier, make_procurement,
                                                                      procurement_data, balance_of):
    a = make_supplier("Samsung (Oro Graphic Inc)")
    b = make_supplier("Transsion")
    p1 = make_procurement(a, (1, "1000"))
    p2 = make_procurement(a, (2, "250"))
    p3 = make_procurement(b, (1, "300"))

    services.update_procurement(p1, procurement_data((1, "1200")))
    services.update_procurement_payment_status(p2)
    services.update_procurement(p3, procurement_data((1, "400")), a)
    services.delete_procurement(p1)

    assert balance_of(a) == Decimal("400.00")
    assert balance_of(b) == Decimal("0.00")
    for supplier_id in (a, b):
        summary = services.get_supplier_ledger_summary(supplier_id)["summary"]
        assert summary["outstanding_balance"] == balance_of(supplier_id)
        report = services.diagnose_supplier_ledger(supplier_id)
        assert report["computed_balance"] == report["stored_balance"]


def test_reference_example(app, make_supplier, make_procurement, procurement_data, balance_of):
    """Create 1000, raise to 1500, pay, delete: the account ends at zero."""
    supplier_id = make_supplier()
    procurement_id = make_procurement(supplier_id, (1, "1000"), purchase_date=date(2025, 1, 15))
    assert balance_of(supplier_id) == Decimal("1000.00")

    services.update_procurement(procurement_id, procurement_data((1, "1500")))
    assert balance_of(supplier_id) == Decimal("1500.00")

    services.update_procurement_payment_status(procurement_id)
    assert balance_of(supplier_id) == Decimal("0.00")

    services.delete_procurement(procurement_id)
    assert balance_of(supplier_id) == Decimal("0.00")

    rows = services.get_supplier_ledger(supplier_id)["ledger_entries"]
    assert [r["is_deleted"] for r in rows] == [True, True]
    assert rows[0]["original_amount"] == Decimal("1500.00")


# ---------------------------------------------------------------------
# Diagnose / recalculate
# ---------------------------------------------------------------------
def _inject_drift(db_session, supplier_id, procurement_id):
    """Corrupt one stored running balance and the supplier total."""
    entry = LedgerEntry.query.filter_by(procurement_id=procurement_id).one()
    entry.running_balance = Decimal("9999.00")
    db_session.get(Supplier, supplier_id).total_outstanding = Decimal("42.00")
    db_session.commit()
    return entry.id


def test_diagnose_reports_drift_without_fixing_it(app, db_session, make_supplier, make_procurement,
                                                  balance_of):
    supplier_id = make_supplier()
    first = make_procurement(supplier_id, (1, "100"))
    drifted = make_procurement(supplier_id, (1, "200"))
    _set_created_at(db_session, first, datetime(2025, 1, 1))
    _set_created_at(db_session, drifted, datetime(2025, 1, 2))
    entry_id = _inject_drift(db_session, supplier_id, drifted)

    result = services.diagnose_supplier_ledger(supplier_id)

    assert result["is_consistent"] is False
    assert result["total_entries"] == 2
    assert result["stored_balance"] == Decimal("42.00")
    assert result["computed_balance"] == Decimal("300.00")
    (row,) = result["drifted_entries"]
    assert row["id"] == entry_id
    assert row["stored_running_balance"] == Decimal("9999.00")
    assert row["computed_running_balance"] == Decimal("300.00")
    assert row["difference"] == Decimal("9699.00")
    assert balance_of(supplier_id) == Decimal("42.00")


def test_recalculate_repairs_drift(app, db_session, make_supplier, make_procurement, balance_of):
    supplier_id = make_supplier()
    first = make_procurement(supplier_id, (1, "100"))
    drifted = make_procurement(supplier_id, (1, "200"))
    _set_created_at(db_session, first, datetime(2025, 1, 1))
    _set_created_at(db_session, drifted, datetime(2025, 1, 2))
    entry_id = _inject_drift(db_session, supplier_id, drifted)

    result = services.recalculate_supplier_balance(supplier_id)

    assert result["success"] is True
    assert result["total_due"] == Decimal("300.00")
    assert result["total_paid"] == Decimal("0.00")
    assert result["final_balance"] == Decimal("300.00")
    assert result["entries_updated"] == 1
    assert balance_of(supplier_id) == Decimal("300.00")
    assert db_session.get(LedgerEntry, entry_id).running_balance == Decimal("300.00")
    assert services.diagnose_supplier_ledger(supplier_id)["is_consistent"] is True


def test_recalculate_unknown_supplier(app):
    assert services.recalculate_supplier_balance(31337)["error_type"] == "not_found"


def test_summary_leaves_out_transferred_purchases(app, make_supplier, make_procurement, procurement_data):
    old_id = make_supplier("Tecno")
    new_id = make_supplier("Tecno Mobile PH")
    procurement_id = make_procurement(old_id, (1, "650"), purchase_date="2025-04-01")

    services.update_procurement(procurement_id, procurement_data((1, "650")), new_id)

    old_summary = services.get_supplier_ledger_summary(old_id)["summary"]
    new_summary = services.get_supplier_ledger_summary(new_id)["summary"]
    assert old_summary["total_transactions"] == 0
    assert old_summary["last_purchase_date"] is None
    assert new_summary["total_transactions"] == 1
    assert new_summary["outstanding_balance"] == Decimal("650.00")
