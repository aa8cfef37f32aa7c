from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum

from lpvault.config import Settings
from lpvault.domain.errors import InsufficientTokens, ZeroAmount
from lpvault.domain.fixed_point import format_units, to_units
from lpvault.ledger.token import MAX_ALLOWANCE, FungibleToken, require_amount
from lpvault.runtime import VaultSystem

logger = logging.getLogger(__name__)


class OperatorAction(StrEnum):
    DEPLOY_FUNDS = "deploy_funds"
    BUY = "buy"
    SELL = "sell"
    RETURN_FUNDS = "return_funds"
    REPORT_PNL = "report_pnl"


class ActionLimitExceeded(ValueError):
    def __init__(self, action: OperatorAction, amount: int, limit: int) -> None:
        super().__init__(
            f"{action} amount {format_units(amount)} exceeds cap {format_units(limit)}"
        )
        self.action = action
        self.amount = amount
        self.limit = limit


@dataclass(frozen=True)
class ActionResult:
    action: OperatorAction
    params: dict[str, str] = field(default_factory=dict)
    note: str | None = None


class OperatorService:
    """Routes operator capital between the vault and the curve.

    Each method is one or two independently atomic engine calls. A failure in
    a later call leaves the earlier one committed; callers must tolerate that
    intermediate state.
    """

    def __init__(self, system: VaultSystem, *, max_deploy: int, max_trade: int) -> None:
        self._system = system
        self._operator = system.operator
        self._max_deploy = max_deploy
        self._max_trade = max_trade

    @classmethod
    def from_settings(cls, system: VaultSystem, settings: Settings) -> OperatorService:
        return cls(
            system,
            max_deploy=to_units(settings.max_deploy_usdc),
            max_trade=to_units(settings.max_trade_usdc),
        )

    def deploy_funds(self, amount: int) -> ActionResult:
        self._check_cap(OperatorAction.DEPLOY_FUNDS, amount, self._max_deploy)
        self._system.vault.deploy_funds(self._operator, amount)
        return ActionResult(OperatorAction.DEPLOY_FUNDS, {"amount": format_units(amount)})

    def buy(self, stable_in: int) -> ActionResult:
        self._check_cap(OperatorAction.BUY, stable_in, self._max_trade)
        curve = self._system.curve
        self._ensure_allowance(curve.asset, curve.address, stable_in)
        fill = curve.buy(self._operator, stable_in)
        return ActionResult(
            OperatorAction.BUY,
            {
                "stable_in": format_units(stable_in),
                "cost": format_units(fill.stable_amount),
                "tokens": format_units(fill.tokens),
            },
        )

    def sell(self, tokens: int) -> ActionResult:
        require_amount(tokens, "tokens")
        if tokens == 0:
            raise ZeroAmount("sell of zero tokens", operation="sell")
        curve = self._system.curve
        held = curve.balance_of(self._operator)
        if held == 0:
            raise InsufficientTokens("no curve tokens to sell", operation="sell")
        note = None
        if tokens > held:
            note = f"clamped from {format_units(tokens)} to wallet balance"
            logger.info(
                "sell_clamped",
                extra={"extra": {"requested": tokens, "balance": held}},
            )
            tokens = held
        fill = curve.sell(self._operator, tokens)
        return ActionResult(
            OperatorAction.SELL,
            {"tokens": format_units(tokens), "proceeds": format_units(fill.stable_amount)},
            note=note,
        )

    def return_funds(self, amount: int) -> ActionResult:
        vault = self._system.vault
        self._ensure_allowance(vault.asset, vault.address, amount)
        vault.return_funds(self._operator, amount)
        return ActionResult(OperatorAction.RETURN_FUNDS, {"amount": format_units(amount)})

    def report_pnl(self, amount: int, *, is_profit: bool) -> ActionResult:
        require_amount(amount)
        signed = amount if is_profit else -amount
        self._system.vault.report_pnl(self._operator, signed)
        return ActionResult(OperatorAction.REPORT_PNL, {"pnl": format_units(signed)})

    def _check_cap(self, action: OperatorAction, amount: int, limit: int) -> None:
        require_amount(amount)
        if amount > limit:
            raise ActionLimitExceeded(action, amount, limit)

    def _ensure_allowance(self, asset: FungibleToken, spender: str, needed: int) -> None:
        if asset.allowance(self._operator, spender) >= needed:
            return
        logger.info(
            "allowance_top_up",
            extra={"extra": {"token": asset.symbol, "spender": spender}},
        )
        asset.approve(self._operator, spender, MAX_ALLOWANCE)
