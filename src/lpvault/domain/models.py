from __future__ import annotations

from dataclasses import dataclass, field

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def normalize_address(value: str | None) -> str:
    """Canonical ledger account id. Hex addresses compare case-insensitively."""

    if value is None:
        return ""
    cleaned = str(value).strip()
    if cleaned.lower().startswith("0x"):
        return cleaned.lower()
    return cleaned


def is_unset_address(value: str | None) -> bool:
    normalized = normalize_address(value)
    return not normalized or normalized == ZERO_ADDRESS


@dataclass(frozen=True)
class TokenState:
    symbol: str
    total_supply: int = 0
    balances: dict[str, int] = field(default_factory=dict)
    allowances: dict[tuple[str, str], int] = field(default_factory=dict)


@dataclass(frozen=True)
class VaultState:
    managed_assets: int = 0


@dataclass(frozen=True)
class CurveState:
    total_issued: int = 0
    reserve_balance: int = 0
