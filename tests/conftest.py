from decimal import Decimal

import pytest

from supplier_ledger import create_app, services
from supplier_ledger.extensions import db
from supplier_ledger.models import LedgerEntry, Supplier


@pytest.fixture(scope='function')
def app():
    """A fresh `Flask` application with an empty in-memory database per test."""
    app = create_app("testing")

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Yields the database session bound to the test's app context."""
    yield db.session


@pytest.fixture
def make_supplier(app):
    """Create a supplier through the service and return its id."""
    def _make(name="Samsung (Oro Graphic Inc)", **fields):
        result = services.create_supplier({"supplier_name": name, **fields})
        assert result["success"], result
        return result["id"]
    return _make


@pytest.fixture
def procurement_data():
    """Build procurement input from (quantity, unit price) pairs."""
    def _build(*lines, purchase_date="2025-01-15", **extra):
        lines = lines or ((1, "1000.00"),)
        items = [
            {
                "manufacturer": "Samsung",
                "model": f"Galaxy A{index}5",
                "ram": "8GB",
                "storage": "256GB",
                "color": "Black",
                "quantity": quantity,
                "dealers_price": price,
                "retail_price": "0",
            }
            for index, (quantity, price) in enumerate(lines, start=1)
        ]
        return {"items": items, "purchase_date": purchase_date, **extra}
    return _build


@pytest.fixture
def make_procurement(make_supplier, procurement_data):
    """Create a procurement for a supplier and return its id."""
    def _make(supplier_id, *lines, **extra):
        result = services.create_procurement(procurement_data(*lines, **extra), supplier_id)
        assert result["success"], result
        return result["procurement_id"]
    return _make


@pytest.fixture
def balance_of(db_session):
    def _balance(supplier_id) -> Decimal:
        db_session.expire_all()
        return db_session.get(Supplier, supplier_id).total_outstanding
    return _balance


@pytest.fixture
def entries_for(db_session):
    """All ledger entries of a procurement, oldest first."""
    def _entries(procurement_id, entry_type=None):
        db_session.expire_all()
        q = LedgerEntry.query.filter_by(procurement_id=procurement_id)
        if entry_type:
            q = q.filter_by(entry_type=entry_type)
        return q.order_by(LedgerEntry.id.asc()).all()
    return _entries
