from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from supplier_ledger import services
from supplier_ledger.exceptions import NotFoundError, TransactionConflictError
from supplier_ledger.models import LedgerEntry, Procurement
from supplier_ledger.services.transactions import run_in_transaction, service_operation


def test_conflict_is_retried(app):
    calls = []

    def work():
        calls.append(1)
        if len(calls) == 1:
            raise StaleDataError("version mismatch")
        return "done"

    assert run_in_transaction(work) == "done"
    assert len(calls) == 2


def test_retries_are_bounded(app):
    calls = []

    def work():
        calls.append(1)
        raise StaleDataError("version mismatch")

    with pytest.raises(TransactionConflictError):
        run_in_transaction(work, retries=2)
    assert len(calls) == 2


def test_work_runs_at_least_once(app):
    calls = []

    def work():
        calls.append(1)
        raise StaleDataError("version mismatch")

    with pytest.raises(TransactionConflictError):
        run_in_transaction(work, retries=0)
    assert len(calls) == 1


def test_lock_contention_is_retried(app):
    calls = []

    def work():
        calls.append(1)
        if len(calls) < 3:
            raise OperationalError("UPDATE suppliers", {}, Exception("database is locked"))
        return len(calls)

    assert run_in_transaction(work) == 3


def test_other_storage_errors_propagate(app):
    calls = []

    def work():
        calls.append(1)
        raise OperationalError("SELECT 1", {}, Exception("no such table: suppliers"))

    with pytest.raises(OperationalError):
        run_in_transaction(work)
    assert len(calls) == 1


def test_service_operation_maps_errors(app):
    @service_operation("loading widget")
    def missing():
        raise NotFoundError("Widget not found")

    @service_operation("loading widget")
    def broken():
        raise KeyError("boom")

    assert missing() == {"success": False, "error": "Widget not found", "error_type": "not_found"}
    result = broken()
    assert result["success"] is False
    assert result["error_type"] == "error"
    assert result["error"].startswith("Error loading widget:")


def test_persistent_conflict_surfaces_as_conflict_result(app, monkeypatch, make_supplier, procurement_data,
                                                         balance_of):
    supplier_id = make_supplier()

    def always_stale(supplier, delta):
        raise StaleDataError("supplier row changed")

    monkeypatch.setattr("supplier_ledger.services.procurements.adjust_balance", always_stale)
    result = services.create_procurement(procurement_data(), supplier_id)

    assert result["success"] is False
    assert result["error_type"] == "conflict"
    assert balance_of(supplier_id) == Decimal("0.00")
    assert Procurement.query.count() == 0
    assert LedgerEntry.query.count() == 0


def test_stale_write_is_detected_by_version_counter(app, db_session, make_supplier, make_procurement):
    supplier_id = make_supplier()
    procurement_id = make_procurement(supplier_id, (1, "1000"))
    procurement = db_session.get(Procurement, procurement_id)
    version = procurement.version_id

    services.update_procurement_delivery_status(procurement_id)

    db_session.expire_all()
    assert db_session.get(Procurement, procurement_id).version_id == version + 1
