import json
from decimal import Decimal

from supplier_ledger import services
from supplier_ledger.models import AuditLog, Supplier


def test_create_supplier_starts_with_zero_balance(app, db_session):
    result = services.create_supplier({
        "supplier_name": "  Oppo Distribution ",
        "bank_name": "BDO",
        "bank_account": "0012-3456-78",
        "notes": "Net 30",
    })

    assert result["success"] is True
    supplier = db_session.get(Supplier, result["id"])
    assert supplier.supplier_name == "Oppo Distribution"
    assert supplier.total_outstanding == Decimal("0")
    assert AuditLog.query.filter_by(entity_type="Supplier", action="CREATE").count() == 1


def test_create_supplier_requires_name(app):
    result = services.create_supplier({"supplier_name": "   ", "bank_name": "BPI"})

    assert result["success"] is False
    assert result["error_type"] == "validation"
    assert Supplier.query.count() == 0


def test_balance_cannot_be_set_through_supplier_fields(app, make_supplier):
    supplier_id = make_supplier()

    created = services.create_supplier({"supplier_name": "Vivo", "total_outstanding": 500})
    updated = services.update_supplier(supplier_id, {"total_outstanding": 500})

    assert created["error_type"] == "validation"
    assert updated["error_type"] == "validation"


def test_update_supplier_is_partial(app, db_session, make_supplier):
    supplier_id = make_supplier("Xiaomi PH", bank_name="Metrobank")

    result = services.update_supplier(supplier_id, {"notes": "Prefers bank transfer"})

    assert result["success"] is True
    supplier = db_session.get(Supplier, supplier_id)
    assert supplier.supplier_name == "Xiaomi PH"
    assert supplier.bank_name == "Metrobank"
    assert supplier.notes == "Prefers bank transfer"


def test_update_unknown_supplier(app):
    result = services.update_supplier(999, {"notes": "x"})

    assert result == {"success": False, "error": "Supplier not found", "error_type": "not_found"}


def test_get_all_suppliers_sorted_by_name(app, make_supplier):
    make_supplier("Vivo")
    make_supplier("Apple Reseller")
    make_supplier("Realme")

    result = services.get_all_suppliers()

    assert result["success"] is True
    assert [s["supplier_name"] for s in result["suppliers"]] == ["Apple Reseller", "Realme", "Vivo"]


def test_get_supplier_by_id(app, make_supplier):
    supplier_id = make_supplier("Realme")

    found = services.get_supplier_by_id(supplier_id)
    missing = services.get_supplier_by_id(supplier_id + 1)

    assert found["success"] is True
    assert found["supplier"]["supplier_name"] == "Realme"
    assert found["supplier"]["total_outstanding"] == Decimal("0.00")
    assert missing["success"] is False


def test_update_audit_keeps_only_changed_fields(app, make_supplier):
    supplier_id = make_supplier("Infinix", bank_name="PNB")

    services.update_supplier(supplier_id, {"supplier_name": "Infinix", "bank_name": "RCBC"})

    log = AuditLog.query.filter_by(entity_type="Supplier", entity_id=supplier_id, action="UPDATE").one()
    assert json.loads(log.before_data) == {"bank_name": "PNB"}
    assert json.loads(log.after_data) == {"bank_name": "RCBC"}
    assert log.ip_address is None
