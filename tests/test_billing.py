from decimal import Decimal

import pytest

from daycare.models import PricingMode
from daycare.utils.billing import (
    calculate_invoice_totals,
    next_invoice_number,
    normalize_line_items,
    to_money,
)


def test_line_amount_defaults_to_quantity_times_rate():
    items = normalize_line_items([
        {"description": "Tuition", "quantity": 2, "rate": "450.50"},
        {"description": "Late pickup fee", "amount": "15"},
    ])

    assert items[0]["amount"] == "901.00"
    assert items[1]["amount"] == "15.00"
    assert items[1]["quantity"] == "1"


def test_base_plus_tax_adds_tax_on_top():
    items = normalize_line_items([
        {"description": "Tuition", "quantity": 1, "rate": "1000"},
        {"description": "Meals", "quantity": 4, "rate": "12.50"},
    ])

    totals = calculate_invoice_totals(items, Decimal("0.05"))

    assert totals.subtotal == Decimal("1050.00")
    assert totals.tax_amount == Decimal("52.50")
    assert totals.total_amount == Decimal("1102.50")


def test_total_includes_tax_backs_tax_out():
    items = normalize_line_items([{"description": "Tuition", "amount": "1050.00"}])

    totals = calculate_invoice_totals(
        items, Decimal("0.05"), pricing_mode=PricingMode.TOTAL_INCLUDES_TAX
    )

    assert totals.total_amount == Decimal("1050.00")
    assert totals.subtotal == Decimal("1000.00")
    assert totals.tax_amount == Decimal("50.00")


def test_tax_disabled_total_equals_line_sum():
    items = normalize_line_items([
        {"description": "Tuition", "amount": "800"},
        {"description": "Supplies", "amount": "33.33"},
    ])

    totals = calculate_invoice_totals(items, Decimal("0.05"), tax_enabled=False)

    assert totals.tax_amount == Decimal("0.00")
    assert totals.total_amount == totals.subtotal == Decimal("833.33")


@pytest.mark.parametrize(
    "last, expected",
    [
        (None, "INV-202603-001"),
        ("INV-202603-001", "INV-202603-002"),
        ("INV-202603-099", "INV-202603-100"),
        ("INV-202603-1000", "INV-202603-1001"),
    ],
)
def test_next_invoice_number(last, expected):
    assert next_invoice_number(2026, 3, last) == expected


def test_to_money_rounds_half_up():
    assert to_money("10.005") == Decimal("10.01")
    assert to_money(3) == Decimal("3.00")
