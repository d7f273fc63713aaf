from datetime import date
from decimal import Decimal

import pytest

import validation
from errors import ValidationError


def test_product_payload_is_typed_and_defaulted():
    cleaned = validation.clean_payload(
        validation.PRODUCT,
        {"name": "  Rice ", "cost_price": "₦1,200.50", "selling_price": 1500, "id": 99},
    )
    assert cleaned == {
        "name": "Rice",
        "cost_price": Decimal("1200.50"),
        "selling_price": Decimal("1500"),
        "stock_quantity": 0,
    }


def test_missing_required_field_names_first_missing():
    with pytest.raises(ValidationError) as excinfo:
        validation.clean_payload(validation.PURCHASE, {"product_id": 1})
    assert excinfo.value.message == "Missing required fields"
    assert excinfo.value.field == "quantity"


def test_blank_string_counts_as_missing():
    with pytest.raises(ValidationError, match="Category name is required"):
        validation.clean_payload(validation.EXPENSE_CATEGORY, {"name": "   "})


@pytest.mark.parametrize("amount", ["-5", -0.01, "abc", True, float("nan"), [1]])
def test_invalid_money_is_rejected(amount):
    with pytest.raises(ValidationError, match="Amount must be a valid non-negative number"):
        validation.clean_payload(validation.EXPENSE, {"description": "Fuel", "amount": amount})


@pytest.mark.parametrize("quantity", [0, -2, "1.5", "many"])
def test_invalid_quantity_is_rejected(quantity):
    with pytest.raises(ValidationError) as excinfo:
        validation.clean_payload(validation.SALE, {"product_id": 1, "quantity": quantity})
    assert excinfo.value.field == "quantity"


def test_sale_date_defaults_to_today():
    cleaned = validation.clean_payload(validation.SALE, {"product_id": "3", "quantity": "2", "date": ""})
    assert cleaned == {"product_id": "3", "quantity": 2, "date": date.today()}


def test_invalid_date_is_rejected():
    with pytest.raises(ValidationError, match="YYYY-MM-DD"):
        validation.clean_payload(validation.SALE, {"product_id": 1, "quantity": 1, "date": "01/02/2024"})


def test_expense_category_zero_means_uncategorized():
    cleaned = validation.clean_payload(
        validation.EXPENSE,
        {"description": "Fuel", "amount": 20, "category_id": 0, "expense_date": "2024-03-01T10:00:00"},
    )
    assert cleaned["category_id"] is None
    assert cleaned["expense_date"] == date(2024, 3, 1)


def test_partial_update_only_touches_given_fields():
    cleaned = validation.clean_payload(validation.EXPENSE, {"amount": "10"}, partial=True)
    assert cleaned == {"amount": Decimal("10")}


def test_partial_update_can_clear_category():
    cleaned = validation.clean_payload(validation.EXPENSE, {"category_id": ""}, partial=True)
    assert cleaned == {"category_id": None}


def test_partial_update_still_validates():
    with pytest.raises(ValidationError):
        validation.clean_payload(validation.PRODUCT, {"stock_quantity": -1}, partial=True)


def test_non_dict_payload_is_rejected():
    with pytest.raises(ValidationError, match="Invalid payload"):
        validation.clean_payload(validation.PRODUCT, ["name"])


def test_parse_record_id_accepts_uuid_strings():
    uuid_id = "3f2a9c1e-7b4d-4e2a-9c1f-0a6b5d8e2f11"
    assert validation.parse_record_id(f" {uuid_id} ", "sale") == uuid_id
    assert validation.parse_record_id(7, "sale") == "7"
    with pytest.raises(ValidationError, match="Missing sale ID"):
        validation.parse_record_id(None, "sale")
    with pytest.raises(ValidationError):
        validation.parse_record_id({"id": 1}, "sale")
    with pytest.raises(ValidationError):
        validation.parse_record_id(True, "sale")


def test_product_reference_keeps_uuid():
    uuid_id = "3f2a9c1e-7b4d-4e2a-9c1f-0a6b5d8e2f11"
    cleaned = validation.clean_payload(
        validation.PURCHASE, {"product_id": uuid_id, "quantity": 1, "total_cost": 5}
    )
    assert cleaned["product_id"] == uuid_id


def test_parse_category_id():
    assert validation.parse_category_id("7") == 7
    with pytest.raises(ValidationError, match="Missing category ID"):
        validation.parse_category_id("")
    with pytest.raises(ValidationError):
        validation.parse_category_id("rent")


def test_expense_category_id_must_be_numeric():
    with pytest.raises(ValidationError, match="Category id must be a valid ID"):
        validation.clean_payload(
            validation.EXPENSE, {"description": "Fuel", "amount": 1, "category_id": "abc"}
        )


@pytest.mark.parametrize("value,expected", [(None, 30), ("", 30), ("7", 7), (365, 365)])
def test_parse_window(value, expected):
    assert validation.parse_window(value) == expected


@pytest.mark.parametrize("value", ["14", "week", "-7"])
def test_parse_window_rejects_other_values(value):
    with pytest.raises(ValidationError):
        validation.parse_window(value)
