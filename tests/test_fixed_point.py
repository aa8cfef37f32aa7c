from __future__ import annotations

from decimal import Decimal

import pytest

from lpvault.domain.fixed_point import (
    SCALE,
    Rounding,
    format_units,
    isqrt_floor,
    mul_div,
    to_units,
)


def test_mul_div_rounds_floor_by_default_and_ceil_on_request() -> None:
    assert mul_div(7, 3, 2) == 10
    assert mul_div(7, 3, 2, Rounding.CEIL) == 11
    assert mul_div(6, 2, 4, Rounding.CEIL) == 3


def test_mul_div_is_exact_beyond_machine_word() -> None:
    big = 2**200
    assert mul_div(big, big, big) == big
    assert mul_div(big + 1, 3, 2) == (3 * big + 3) // 2


@pytest.mark.parametrize(("a", "b", "denominator"), [(1, 1, 0), (-1, 1, 1), (1, -1, 1), (1, 1, -5)])
def test_mul_div_rejects_invalid_operands(a: int, b: int, denominator: int) -> None:
    with pytest.raises(ValueError):
        mul_div(a, b, denominator)


def test_isqrt_floor() -> None:
    assert isqrt_floor(0) == 0
    assert isqrt_floor(15) == 3
    assert isqrt_floor(16) == 4
    assert isqrt_floor(10**40 + 1) == 10**20
    with pytest.raises(ValueError):
        isqrt_floor(-1)


def test_to_units_parses_whole_unit_amounts() -> None:
    assert to_units("1.5") == 1_500_000
    assert to_units(" 2 ") == 2 * SCALE
    assert to_units(3) == 3 * SCALE
    assert to_units(Decimal("0.000001")) == 1


def test_to_units_truncates_sub_unit_precision() -> None:
    assert to_units("0.0000019") == 1
    assert to_units("1.23456789") == 1_234_567


@pytest.mark.parametrize("value", [1.5, True])
def test_to_units_rejects_float_and_bool(value: object) -> None:
    with pytest.raises(TypeError):
        to_units(value)


@pytest.mark.parametrize("value", ["abc", "NaN", "Infinity"])
def test_to_units_rejects_non_numeric_text(value: str) -> None:
    with pytest.raises(ValueError):
        to_units(value)


def test_format_units() -> None:
    assert format_units(0) == "0"
    assert format_units(1_500_000) == "1.5"
    assert format_units(15_000) == "0.015"
    assert format_units(-2 * SCALE) == "-2"


@pytest.mark.parametrize("value", ["1e999999", Decimal("9e999999")])
def test_to_units_rejects_amounts_beyond_decimal_range(value: object) -> None:
    with pytest.raises(ValueError, match="out of range"):
        to_units(value)
