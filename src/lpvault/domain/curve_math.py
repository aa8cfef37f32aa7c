"""Exact integer pricing for an affine bonding curve.

Supply ``s`` and prices are raw integers at ``10**-decimals`` scale. The
marginal price of one whole token at supply ``s`` is::

    P(s) = base + slope * s / scale

and the stablecoin needed to move supply from ``s0`` to ``s1`` is the
integral of ``P`` over whole tokens::

    cost(s0, s1) = base * (s1 - s0) / scale + slope * (s1**2 - s0**2) / (2 * scale**2)

Both terms share one denominator so the result is rounded exactly once.
"""

from __future__ import annotations

from dataclasses import dataclass

from lpvault.domain.fixed_point import SCALE, Rounding, div_round, isqrt_floor


@dataclass(frozen=True)
class CurveParams:
    base_price: int
    slope: int
    scale: int = SCALE

    def __post_init__(self) -> None:
        if self.base_price < 0:
            raise ValueError(f"base_price must be >= 0, got {self.base_price}")
        if self.slope <= 0:
            raise ValueError(f"slope must be > 0, got {self.slope}")
        if self.scale <= 0:
            raise ValueError(f"scale must be > 0, got {self.scale}")


def price_at(params: CurveParams, supply: int) -> int:
    return params.base_price + div_round(params.slope * supply, params.scale)


def _integral_numerator(params: CurveParams, s0: int, s1: int) -> int:
    return 2 * params.scale * params.base_price * (s1 - s0) + params.slope * (s1 * s1 - s0 * s0)


def curve_cost(params: CurveParams, s0: int, s1: int, rounding: Rounding = Rounding.FLOOR) -> int:
    if s0 < 0 or s1 < s0:
        raise ValueError(f"invalid supply range s0={s0} s1={s1}")
    return div_round(
        _integral_numerator(params, s0, s1),
        2 * params.scale * params.scale,
        rounding,
    )


def buy_cost(params: CurveParams, supply: int, tokens: int) -> int:
    """Stablecoin charged to mint ``tokens``; rounds up so the reserve stays covered."""

    return curve_cost(params, supply, supply + tokens, Rounding.CEIL)


def sell_return(params: CurveParams, supply: int, tokens: int) -> int:
    """Stablecoin paid for burning ``tokens``; rounds down."""

    if tokens > supply:
        raise ValueError(f"cannot sell {tokens} of supply {supply}")
    return curve_cost(params, supply - tokens, supply, Rounding.FLOOR)


def tokens_for_stable(params: CurveParams, supply: int, stable_in: int) -> int:
    """Largest token count whose ``buy_cost`` fits in ``stable_in``.

    Solves ``slope*t**2 + b*t - c = 0`` with ``b = 2*(scale*base + slope*supply)``
    and ``c = 2*scale**2*stable_in`` using a floor square root.
    """

    if stable_in <= 0:
        return 0
    a = params.slope
    b = 2 * (params.scale * params.base_price + params.slope * supply)
    c = 2 * params.scale * params.scale * stable_in
    root = isqrt_floor(b * b + 4 * a * c)
    if root <= b:
        return 0
    tokens = (root - b) // (2 * a)
    # floor sqrt can undershoot by one token
    while buy_cost(params, supply, tokens + 1) <= stable_in:
        tokens += 1
    return tokens
