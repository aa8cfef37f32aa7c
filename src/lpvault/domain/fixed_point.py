from __future__ import annotations

import math
from decimal import ROUND_DOWN, Decimal, DecimalException, InvalidOperation
from enum import StrEnum

DECIMALS = 6
SCALE = 10**DECIMALS
ONE_UNIT = SCALE


class Rounding(StrEnum):
    FLOOR = "floor"
    CEIL = "ceil"


def mul_div(a: int, b: int, denominator: int, rounding: Rounding = Rounding.FLOOR) -> int:
    """Exact ``a * b / denominator`` on unbounded ints, floor unless asked otherwise."""

    if denominator <= 0:
        raise ValueError(f"denominator must be positive, got {denominator}")
    if a < 0 or b < 0:
        raise ValueError(f"mul_div operands must be non-negative, got a={a} b={b}")
    quotient, remainder = divmod(a * b, denominator)
    if rounding == Rounding.CEIL and remainder:
        quotient += 1
    return quotient


def div_round(numerator: int, denominator: int, rounding: Rounding = Rounding.FLOOR) -> int:
    return mul_div(numerator, 1, denominator, rounding)


def isqrt_floor(value: int) -> int:
    """Largest ``r`` with ``r * r <= value``."""

    if value < 0:
        raise ValueError(f"square root of negative value {value}")
    return math.isqrt(value)


def to_decimal(value: object) -> Decimal:
    """Convert supported numeric inputs to Decimal without allowing implicit float coercion."""

    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("bool values are not accepted as amounts")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation as exc:
            raise ValueError(f"invalid decimal amount: {value!r}") from exc
    if isinstance(value, float):
        raise TypeError("float values are not accepted; pass string/int/Decimal explicitly")
    raise TypeError(f"unsupported decimal conversion type: {type(value).__name__}")


def to_units(value: object, decimals: int = DECIMALS) -> int:
    """Whole-unit amount -> raw integer at ``10**-decimals`` scale, truncated toward zero."""

    amount = to_decimal(value)
    if not amount.is_finite():
        raise ValueError(f"amount must be finite, got {value!r}")
    try:
        scaled = amount.scaleb(decimals).to_integral_value(rounding=ROUND_DOWN)
    except DecimalException as exc:
        raise ValueError(f"amount out of range: {value!r}") from exc
    return int(scaled)


def format_units(raw: int, decimals: int = DECIMALS) -> str:
    sign = "-" if raw < 0 else ""
    whole, frac = divmod(abs(raw), 10**decimals)
    if not frac:
        return f"{sign}{whole}"
    frac_text = str(frac).rjust(decimals, "0").rstrip("0")
    return f"{sign}{whole}.{frac_text}"
