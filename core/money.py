from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, float):
        # str() avoids binary float artefacts (0.1 -> 0.1000000000000000055...)
        value = str(value)
    try:
        result = value if isinstance(value, Decimal) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValueError(f"Invalid amount: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return result


def quantize_money(value: Any) -> Decimal:
    """Round to the currency minor unit, half-up."""
    try:
        return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError(f"Amount out of range: {value!r}") from exc


def commission_for(gross_amount: Any, rate_percent: Any) -> Decimal:
    return quantize_money(to_decimal(gross_amount) * to_decimal(rate_percent) / HUNDRED)


def sum_money(values: Iterable[Any]) -> Decimal:
    total = ZERO
    for value in values:
        if value is not None:
            total += to_decimal(value)
    return total
