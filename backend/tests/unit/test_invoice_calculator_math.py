from decimal import Decimal
import random

import pytest

from app.core.exceptions import ValidationException
from app.services.invoice_calculator import (
    calculate_invoice_totals,
    calculate_item_amounts,
    round_to_two_decimals,
)


def test_item_amounts_for_taxed_line():
    amounts = calculate_item_amounts(2, 100, Decimal("0.15"))

    assert amounts.rate_inclusive == Decimal("115.00")
    assert amounts.line_total == Decimal("230.00")
    assert amounts.amount == Decimal("200.00")
    assert amounts.tax_amount == Decimal("30.00")


def test_item_amounts_without_tax():
    amounts = calculate_item_amounts(Decimal("1.5"), Decimal("245"), 0)

    assert amounts.rate_inclusive == Decimal("245.00")
    assert amounts.line_total == Decimal("367.50")
    assert amounts.amount == Decimal("367.50")
    assert amounts.tax_amount == Decimal("0.00")


@pytest.mark.parametrize(
    "quantity,unit_price,tax_rate",
    [
        ("1.3", "187.37", "0.15"),
        ("0.7", "99.99", "0.125"),
        ("3", "0.01", "0.15"),
        ("2.25", "1234.56", "0.2"),
    ],
)
def test_item_amount_and_tax_add_up_to_line_total(quantity, unit_price, tax_rate):
    amounts = calculate_item_amounts(quantity, unit_price, tax_rate)

    assert amounts.amount + amounts.tax_amount == amounts.line_total
    assert amounts.amount >= 0
    assert amounts.tax_amount >= 0


def test_rounding_is_half_away_from_zero():
    assert round_to_two_decimals("1.005") == Decimal("1.01")
    assert round_to_two_decimals(2.675) == Decimal("2.68")
    assert round_to_two_decimals("-1.005") == Decimal("-1.01")
    assert round_to_two_decimals("0.125") == Decimal("0.13")


@pytest.mark.parametrize(
    "quantity,unit_price,tax_rate,code",
    [
        (0, 100, 0, "INVALID_QUANTITY"),
        (-1, 100, 0, "INVALID_QUANTITY"),
        (1, -0.01, 0, "INVALID_UNIT_PRICE"),
        (1, 100, "1.5", "INVALID_TAX_RATE"),
        (1, 100, "-0.1", "INVALID_TAX_RATE"),
    ],
)
def test_invalid_line_inputs_are_rejected(quantity, unit_price, tax_rate, code):
    with pytest.raises(ValidationException) as exc_info:
        calculate_item_amounts(quantity, unit_price, tax_rate)
    assert exc_info.value.code == code


def test_invoice_totals_sum_lines():
    totals = calculate_invoice_totals(
        [
            {"quantity": 2, "unit_price": 100, "tax_rate": Decimal("0.15")},
            {"quantity": 1, "unit_price": 50, "tax_rate": 0},
        ]
    )

    assert totals.subtotal == Decimal("250.00")
    assert totals.tax_total == Decimal("30.00")
    assert totals.total_amount == Decimal("280.00")


def test_invoice_totals_skip_deleted_lines():
    totals = calculate_invoice_totals(
        [
            {"amount": Decimal("200.00"), "tax_amount": Decimal("30.00"), "deleted_at": None},
            {"amount": Decimal("999.00"), "tax_amount": Decimal("1.00"), "deleted_at": "2030-01-01"},
        ]
    )

    assert totals.subtotal == Decimal("200.00")
    assert totals.tax_total == Decimal("30.00")
    assert totals.total_amount == Decimal("230.00")


def test_invoice_totals_do_not_depend_on_item_order():
    rng = random.Random(20300116)
    items = [
        {
            "quantity": Decimal(rng.randint(1, 400)) / 100,
            "unit_price": Decimal(rng.randint(0, 50000)) / 100,
            "tax_rate": Decimal("0.15"),
        }
        for _ in range(25)
    ]
    expected = calculate_invoice_totals(items)

    for _ in range(5):
        shuffled = list(items)
        rng.shuffle(shuffled)
        assert calculate_invoice_totals(shuffled) == expected


def test_empty_invoice_totals_are_zero():
    totals = calculate_invoice_totals([])

    assert totals.subtotal == Decimal("0.00")
    assert totals.total_amount == Decimal("0.00")
