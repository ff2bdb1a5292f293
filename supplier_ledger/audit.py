"""
supplier_ledger/audit.py

Audit trail for ledger mutations.

Every lifecycle operation writes one AuditLog row in the SAME transaction as the
balance and ledger changes, so an operation and its audit row are committed or
rolled back together.

Snapshots:
- serialize_model() captures scalar columns only (no relationships).
- Money is written as a 2-decimal string, dates/datetimes as ISO text, so the
  JSON is stable across SQLite and PostgreSQL.
- When both snapshots are given, only the columns that changed are stored.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from flask import has_request_context, request

from .extensions import db
from .models import AuditLog, _money

# Bookkeeping columns that change on every write
_VOLATILE_COLUMNS = {"updated_at", "version_id"}


def _snapshot_value(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, Decimal):
        return str(_money(value))
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def serialize_model(instance: Any) -> Dict[str, Any]:
    """Column name -> JSON-safe value for a model instance."""
    return {
        column.name: _snapshot_value(getattr(instance, column.name))
        for column in instance.__table__.columns
    }


def changed_fields(before: Dict[str, Any], after: Dict[str, Any]) -> tuple[dict, dict]:
    """Reduce two snapshots to the keys whose values differ."""
    keys = [
        key for key in sorted(set(before) | set(after))
        if key not in _VOLATILE_COLUMNS and before.get(key) != after.get(key)
    ]
    return {k: before.get(k) for k in keys}, {k: after.get(k) for k in keys}


def log_action(
    entity: Any,
    action: str,
    *,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Stage an AuditLog row on the current session.

    entity must already have an id (flush new rows first). action is one of
    CREATE / UPDATE / DELETE / PAYMENT / DELIVERY / RECALCULATE.
    """
    entity_id = getattr(entity, "id", None)
    if entity_id is None:
        raise ValueError("log_action entity must have an 'id' attribute (after flush).")

    if before and after:
        before, after = changed_fields(before, after)

    entry = AuditLog(
        entity_type=entity.__class__.__name__,
        entity_id=int(entity_id),
        action=str(action),
        before_data=json.dumps(before, ensure_ascii=False) if before else None,
        after_data=json.dumps(after, ensure_ascii=False) if after else None,
        ip_address=request.remote_addr if has_request_context() else None,
    )
    db.session.add(entry)
    return entry
