"""
Invoice line and total arithmetic.

All money is Decimal and every rounding step is ``round_to_two_decimals``:
half away from zero to the cent (ROUND_HALF_UP on Decimal), never banker's
rounding. Floats are converted through ``str`` first so that 1.005 means
the decimal 1.005 and not its binary approximation.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional, Union

from ..core.exceptions import ValidationException

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
ZERO = Decimal("0")
ONE = Decimal("1")


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationException(f"Not a number: {value!r}", code="INVALID_NUMBER") from exc


def round_to_two_decimals(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ItemAmounts:
    rate_inclusive: Decimal
    line_total: Decimal
    amount: Decimal
    tax_amount: Decimal


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    tax_total: Decimal
    total_amount: Decimal


def calculate_item_amounts(quantity: Number, unit_price: Number, tax_rate: Number) -> ItemAmounts:
    """
    Derive the stored figures of one invoice line.

    The line total is quantity times the rounded tax-inclusive rate, and the
    tax is whatever remains after backing the net amount out of it, so
    ``amount + tax_amount == line_total`` holds exactly.
    """
    qty = to_decimal(quantity)
    price = to_decimal(unit_price)
    rate = to_decimal(tax_rate)

    if qty <= ZERO:
        raise ValidationException("Quantity must be greater than zero", code="INVALID_QUANTITY")
    if price < ZERO:
        raise ValidationException("Unit price cannot be negative", code="INVALID_UNIT_PRICE")
    if rate < ZERO or rate > ONE:
        raise ValidationException("Tax rate must be between 0 and 1", code="INVALID_TAX_RATE")

    rate_inclusive = round_to_two_decimals(price * (ONE + rate))
    line_total = round_to_two_decimals(qty * rate_inclusive)
    amount = round_to_two_decimals(line_total / (ONE + rate))
    tax_amount = round_to_two_decimals(line_total - amount)

    return ItemAmounts(
        rate_inclusive=rate_inclusive,
        line_total=line_total,
        amount=amount,
        tax_amount=tax_amount,
    )


def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def _item_amounts(item: Any) -> tuple[Decimal, Decimal]:
    amount: Optional[Any] = _field(item, "amount")
    tax_amount: Optional[Any] = _field(item, "tax_amount")
    if amount is None or tax_amount is None:
        computed = calculate_item_amounts(
            _field(item, "quantity"),
            _field(item, "unit_price"),
            _field(item, "tax_rate") or ZERO,
        )
        amount = computed.amount if amount is None else amount
        tax_amount = computed.tax_amount if tax_amount is None else tax_amount
    return to_decimal(amount), to_decimal(tax_amount)


def calculate_invoice_totals(items: Iterable[Any]) -> InvoiceTotals:
    """
    Sum the non-deleted lines of an invoice.

    Items may be ORM rows or mappings. Lines without stored amounts are
    derived from quantity, unit price and tax rate. Decimal addition is
    exact, so the result does not depend on item order.
    """
    subtotal = ZERO
    tax_total = ZERO
    for item in items:
        if _field(item, "deleted_at") is not None:
            continue
        amount, tax_amount = _item_amounts(item)
        subtotal += amount
        tax_total += tax_amount

    subtotal = round_to_two_decimals(subtotal)
    tax_total = round_to_two_decimals(tax_total)
    return InvoiceTotals(
        subtotal=subtotal,
        tax_total=tax_total,
        total_amount=round_to_two_decimals(subtotal + tax_total),
    )
