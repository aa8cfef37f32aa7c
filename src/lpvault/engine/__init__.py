"""Deterministic accounting engines: share vault and bonding curve market."""

from lpvault.engine.bonding_curve import BondingCurveMarket, CurveFill
from lpvault.engine.guard import EngineGuard
from lpvault.engine.vault import ShareVault

__all__ = [
    "BondingCurveMarket",
    "CurveFill",
    "EngineGuard",
    "ShareVault",
]
