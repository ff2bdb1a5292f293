"""
Suppliers blueprint package.

This file just exposes the Blueprint object to be imported in supplier_ledger.__init__.
The actual routes are in routes.py.
"""

from .routes import suppliers_bp  # noqa: F401
