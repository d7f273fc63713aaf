from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, FrozenSet, Optional

from errors import ValidationError

TEXT = "text"
MONEY = "money"
QUANTITY = "quantity"
COUNT = "count"
DATE = "date"
REFERENCE = "reference"
OPTIONAL_CATEGORY = "optional_category"


@dataclass(frozen=True)
class EntitySchema:
    """Writable fields of one entity and how to clean them.

    Keys outside ``fields`` are dropped, so clients can never set ``id``,
    ``user_id`` or store-computed columns such as ``total_sales``.
    """

    entity: str
    fields: Dict[str, str]
    required: FrozenSet[str]
    defaults: Dict[str, Callable[[], Any]] = field(default_factory=dict)
    required_message: Optional[str] = None


PRODUCT = EntitySchema(
    entity="product",
    fields={
        "name": TEXT,
        "cost_price": MONEY,
        "selling_price": MONEY,
        "stock_quantity": COUNT,
    },
    required=frozenset({"name", "cost_price", "selling_price"}),
    defaults={"stock_quantity": lambda: 0},
)

SALE = EntitySchema(
    entity="sale",
    fields={"product_id": REFERENCE, "quantity": QUANTITY, "date": DATE},
    required=frozenset({"product_id", "quantity"}),
    defaults={"date": date.today},
    required_message="All fields are required",
)

PURCHASE = EntitySchema(
    entity="purchase",
    fields={
        "product_id": REFERENCE,
        "quantity": QUANTITY,
        "total_cost": MONEY,
        "date": DATE,
    },
    required=frozenset({"product_id", "quantity", "total_cost"}),
    defaults={"date": date.today},
    required_message="Missing required fields",
)

EXPENSE = EntitySchema(
    entity="expense",
    fields={
        "description": TEXT,
        "amount": MONEY,
        "category_id": OPTIONAL_CATEGORY,
        "expense_date": DATE,
    },
    required=frozenset({"description", "amount"}),
    defaults={"expense_date": date.today, "category_id": lambda: None},
    required_message="Description and amount are required",
)

EXPENSE_CATEGORY = EntitySchema(
    entity="category",
    fields={"name": TEXT},
    required=frozenset({"name"}),
    required_message="Category name is required",
)

REPORT_WINDOWS = (7, 30, 90, 365)
DEFAULT_REPORT_WINDOW = 30


def clean_payload(schema: EntitySchema, payload: Any, partial: bool = False) -> Dict[str, Any]:
    """Validate ``payload`` against ``schema`` and return typed column values.

    On create every required field must be present and non-blank and
    defaults fill the remaining gaps. With ``partial`` only the keys present
    are validated, using the same per-field rules.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid payload")

    if not partial:
        missing = sorted(key for key in schema.required if _is_blank(payload.get(key)))
        if missing:
            message = schema.required_message or f"Missing required fields: {', '.join(missing)}"
            raise ValidationError(message, field=missing[0])

    cleaned: Dict[str, Any] = {}
    for key, kind in schema.fields.items():
        if key not in payload:
            continue
        value = payload[key]
        if kind in (DATE, OPTIONAL_CATEGORY) and _is_blank(value) and not partial:
            continue
        cleaned[key] = _PARSERS[kind](value, key)

    if not partial:
        for key, factory in schema.defaults.items():
            if key not in cleaned:
                cleaned[key] = factory()
    return cleaned


def parse_record_id(value: Any, entity: str) -> str:
    if _is_blank(value):
        raise ValidationError(f"Missing {entity} ID", field="id")
    return _parse_reference(value, "id")


def parse_category_id(value: Any) -> int:
    if _is_blank(value):
        raise ValidationError("Missing category ID", field="id")
    return _parse_category_id(value, "id")


def parse_window(value: Any) -> int:
    if _is_blank(value):
        return DEFAULT_REPORT_WINDOW
    try:
        days = int(str(value).strip())
    except ValueError:
        raise ValidationError("days must be one of 7, 30, 90 or 365", field="days") from None
    if days not in REPORT_WINDOWS:
        raise ValidationError("days must be one of 7, 30, 90 or 365", field="days")
    return days


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def _label(key: str) -> str:
    return key.replace("_", " ").capitalize()


def _parse_text(value: Any, key: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{_label(key)} is required", field=key)
    return value.strip()


def _parse_number(value: Any, key: str, message: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError(message, field=key)
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float)):
        number = Decimal(str(value))
    elif isinstance(value, str):
        cleaned = value.replace("₦", "").replace(",", "").strip()
        try:
            number = Decimal(cleaned)
        except InvalidOperation:
            raise ValidationError(message, field=key) from None
    else:
        raise ValidationError(message, field=key)
    if not number.is_finite():
        raise ValidationError(message, field=key)
    return number


def _parse_money(value: Any, key: str) -> Decimal:
    message = f"{_label(key)} must be a valid non-negative number"
    number = _parse_number(value, key, message)
    if number < 0:
        raise ValidationError(message, field=key)
    return number


def _parse_integer(value: Any, key: str, minimum: int, message: str) -> int:
    number = _parse_number(value, key, message)
    if number != number.to_integral_value() or number < minimum:
        raise ValidationError(message, field=key)
    return int(number)


def _parse_quantity(value: Any, key: str) -> int:
    return _parse_integer(value, key, 1, f"{_label(key)} must be a whole number greater than 0")


def _parse_count(value: Any, key: str) -> int:
    return _parse_integer(value, key, 0, f"{_label(key)} must be a whole number of at least 0")


def _parse_reference(value: Any, key: str) -> str:
    # store ids are opaque strings (UUIDs); integers are accepted and stringified
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ValidationError(f"{_label(key)} must be a valid ID", field=key)
    text = str(value).strip()
    if not text:
        raise ValidationError(f"{_label(key)} must be a valid ID", field=key)
    return text


def _parse_category_id(value: Any, key: str) -> int:
    return _parse_integer(value, key, 1, f"{_label(key)} must be a valid ID")


def _parse_optional_category(value: Any, key: str) -> Optional[int]:
    if _is_blank(value) or value == 0:
        return None
    return _parse_category_id(value, key)


def _parse_date(value: Any, key: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    raise ValidationError(f"{_label(key)} must be a date in YYYY-MM-DD format", field=key)


_PARSERS: Dict[str, Callable[[Any, str], Any]] = {
    TEXT: _parse_text,
    MONEY: _parse_money,
    QUANTITY: _parse_quantity,
    COUNT: _parse_count,
    DATE: _parse_date,
    REFERENCE: _parse_reference,
    OPTIONAL_CATEGORY: _parse_optional_category,
}
