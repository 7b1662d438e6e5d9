"""
Decimal helpers for money and stock quantities.

Money is kept at two places, quantities at three (a 0.001 unit is the
smallest stock step the shop records). All arithmetic in services goes
through these helpers so values written to the Numeric columns are already
quantized.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

TWOPLACES = Decimal("0.01")
THREEPLACES = Decimal("0.001")
ZERO = Decimal("0")


def _as_decimal(value) -> Decimal:
    if isinstance(value, bool):
        raise InvalidOperation("booleans are not amounts")
    if isinstance(value, Decimal):
        return value
    if value is None or value == "":
        return ZERO
    return Decimal(str(value))


def money(value) -> Decimal:
    return _as_decimal(value).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def quantity(value) -> Decimal:
    return _as_decimal(value).quantize(THREEPLACES, rounding=ROUND_HALF_UP)


def line_total(qty, rate) -> Decimal:
    return money(quantity(qty) * money(rate))


def decimal_str(value) -> str | None:
    """Serialize a Numeric column value for JSON without float drift."""
    if value is None:
        return None
    return str(value)
