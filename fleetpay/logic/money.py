from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from fleetpay.core.config import settings


ZERO = Decimal("0")
WHOLE_UNIT = Decimal("1")


def to_decimal(value: str | int | float | Decimal | None) -> Decimal:
    """Coerce a DB/JSON value to Decimal; None counts as zero."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"not a number: {value!r}") from exc


def sum_amounts(values) -> Decimal:
    total = ZERO
    for value in values:
        total += to_decimal(value)
    return total


def _group_indian(digits: str) -> str:
    # Last three digits, then pairs: 12345678 -> 1,23,45,678
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs + [tail])


def format_currency(amount: str | int | float | Decimal | None, symbol: str | None = None) -> str:
    """
    Display format for money: whole units, half-up rounding, Indian digit grouping.

    This is the only place amounts are rounded.
    """
    value = to_decimal(amount).quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP)
    prefix = settings.CURRENCY_SYMBOL if symbol is None else symbol
    sign = "-" if value < 0 else ""
    return f"{sign}{prefix}{_group_indian(str(abs(int(value))))}"
