"""
Money arithmetic for orders.

All amounts are Decimal quantized to cents (ROUND_HALF_UP).  Floats are
converted through str() so 19.99 stays 19.99.
"""
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Union

CENT = Decimal("0.01")

Number = Union[Decimal, int, float, str, None]


def to_decimal(value: Number) -> Decimal:
    """Exact Decimal for any numeric input (None → 0)."""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, float):
        value = str(value)
    try:
        return Decimal(value)
    except InvalidOperation as exc:
        raise ValueError(f"Not a monetary amount: {value!r}") from exc


def to_money(value: Number) -> Decimal:
    """Convert any numeric input to a cent-quantized Decimal (None → 0.00)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(quantity: int, unit_price: Number) -> Decimal:
    return to_money(Decimal(quantity) * to_decimal(unit_price))


def subtotal(lines: Iterable[tuple[int, Number]]) -> Decimal:
    """Sum of quantity × unit_price over (quantity, unit_price) pairs."""
    return sum((line_total(q, p) for q, p in lines), Decimal("0.00"))


def order_total(lines: Iterable[tuple[int, Number]], shipping_cost: Number, tax_amount: Number) -> Decimal:
    return to_money(subtotal(lines) + to_money(shipping_cost) + to_money(tax_amount))


def format_money(value: Number, currency: str = "") -> str:
    """'1234.5', 'EUR' → '1234.50 EUR'."""
    amount = f"{to_money(value):.2f}"
    return f"{amount} {currency}".strip()
