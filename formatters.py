import os
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

CURRENCY_SYMBOL = os.getenv("CURRENCY_SYMBOL", "₦")


def to_decimal(value: Any) -> Decimal:
    """Coerce a display value to Decimal; missing or unparseable values count as 0."""
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    try:
        return Decimal(str(value).strip() or "0")
    except InvalidOperation:
        return Decimal("0")


def format_number(value: Any) -> str:
    """Plain number text without trailing zeros: ``100``, ``12.5``, ``-3.25``."""
    amount = to_decimal(value)
    if amount == amount.to_integral_value():
        return str(int(amount))
    return format(amount.normalize(), "f")


def currency(value: Any, symbol: Optional[str] = None) -> str:
    symbol = CURRENCY_SYMBOL if symbol is None else symbol
    amount = to_decimal(value)
    if amount == amount.to_integral_value():
        return f"{symbol}{int(amount):,}"
    return f"{symbol}{amount.quantize(Decimal('0.01')):,}"


def parse_date(value: Any) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def iso_date(value: Any) -> str:
    if not value:
        return ""
    if isinstance(value, (date, datetime)):
        return value.strftime("%Y-%m-%d")
    return str(value)


def short_date(value: Any) -> str:
    parsed = parse_date(value)
    if parsed is None:
        return str(value or "")
    return f"{parsed:%b} {parsed.day}"
