"""
Utility functions shared across the app. This includes:
- generate_procurement_reference / generate_payment_reference: reference codes
  (PROC-<epoch-ms>-<NNN>, PAY-<epoch-ms>-<NNN>) kept compatible with existing data.
- parse_decimal / parse_date: lenient parsing of caller input.
- format_amount: currency text used in ledger descriptions.
"""

from __future__ import annotations

import random
import time
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from flask import current_app, has_app_context


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def _random_suffix() -> str:
    return f"{random.randint(0, 999):03d}"


def generate_procurement_reference() -> str:
    return f"PROC-{_epoch_ms()}-{_random_suffix()}"


def generate_payment_reference() -> str:
    return f"PAY-{_epoch_ms()}-{_random_suffix()}"


def parse_decimal(value) -> Decimal | None:
    """Parse decimal from user input (accepts comma thousands separators)."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    raw = str(value).strip().replace(",", "")
    if raw == "":
        return None
    try:
        value = Decimal(raw)
    except (InvalidOperation, ValueError):
        return None
    # NaN and Infinity are not amounts
    return value if value.is_finite() else None


def parse_date(value) -> date | None:
    """Accept a date, a datetime or a YYYY-MM-DD string."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = str(value).strip()
    if raw == "":
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return None


def format_amount(amount) -> str:
    """₱1,234.50 style text (symbol from CURRENCY_SYMBOL)."""
    symbol = current_app.config.get("CURRENCY_SYMBOL", "₱") if has_app_context() else "₱"
    return f"{symbol}{Decimal(str(amount or 0)):,.2f}"
