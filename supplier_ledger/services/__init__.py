"""
supplier_ledger/services

Public call contract of the ledger engine. Every function returns a dict with a
``success`` flag; failures carry ``error`` and ``error_type``.
"""

from __future__ import annotations

from .procurements import (  # noqa: F401
    create_procurement,
    delete_procurement,
    get_procurement_by_id,
    get_procurements_by_supplier,
    update_procurement,
    update_procurement_delivery_status,
    update_procurement_payment_status,
)
from .reconstruction import (  # noqa: F401
    diagnose_supplier_ledger,
    get_supplier_ledger,
    get_supplier_ledger_summary,
    recalculate_supplier_balance,
)
from .suppliers import (  # noqa: F401
    create_supplier,
    get_all_suppliers,
    get_supplier_by_id,
    update_supplier,
)
