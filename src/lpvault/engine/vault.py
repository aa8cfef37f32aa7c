from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from lpvault.domain.errors import (
    ExcessiveReduction,
    InsufficientLiquidity,
    Unauthorized,
    ZeroAddress,
    ZeroAmount,
)
from lpvault.domain.events import EngineEvent, EngineEventType
from lpvault.domain.fixed_point import ONE_UNIT, Rounding, mul_div
from lpvault.domain.models import VaultState, is_unset_address, normalize_address
from lpvault.engine.guard import EngineGuard
from lpvault.ledger.token import FungibleToken, require_amount

logger = logging.getLogger(__name__)

DEFAULT_VIRTUAL_OFFSET = 1000


@dataclass(frozen=True)
class _VaultCheckpoint:
    state: VaultState
    event_count: int


class ShareVault:
    """Share-based pool over a funding asset with operator-managed capital.

    ``total_assets`` is the pool balance observed on the funding asset plus
    ``managed_assets``. Conversions add ``virtual_offset`` to both sides of the
    share/asset ratio and always round toward the pool.
    """

    def __init__(
        self,
        asset: FungibleToken,
        *,
        operator: str,
        address: str = "vault",
        share_symbol: str = "easyL",
        virtual_offset: int = DEFAULT_VIRTUAL_OFFSET,
    ) -> None:
        if is_unset_address(operator):
            raise ZeroAddress("vault operator must be set", operation="init")
        if is_unset_address(address):
            raise ZeroAddress("vault address must be set", operation="init")
        if virtual_offset <= 0:
            raise ValueError(f"virtual_offset must be positive, got {virtual_offset}")
        self.asset = asset
        self.operator = normalize_address(operator)
        self.address = normalize_address(address)
        self.virtual_offset = virtual_offset
        self.shares = FungibleToken(share_symbol, minter=self.address, decimals=asset.decimals)
        self.lock = threading.RLock()
        self.events: list[EngineEvent] = []
        self._managed_assets = 0
        self._guard = EngineGuard("vault", lambda: (self, self.asset, self.shares))

    # -- reads -------------------------------------------------------------

    @property
    def managed_assets(self) -> int:
        return self._managed_assets

    @property
    def total_shares(self) -> int:
        return self.shares.total_supply

    def available_liquidity(self) -> int:
        return self.asset.balance_of(self.address)

    def total_assets(self) -> int:
        with self._guard.read():
            return self.available_liquidity() + self._managed_assets

    def balance_of(self, holder: str) -> int:
        return self.shares.balance_of(holder)

    def convert_to_shares(self, assets: int) -> int:
        require_amount(assets, "assets")
        with self._guard.read():
            return mul_div(
                assets,
                self.total_shares + self.virtual_offset,
                self.total_assets() + self.virtual_offset,
                Rounding.FLOOR,
            )

    def convert_to_assets(self, shares: int) -> int:
        require_amount(shares, "shares")
        with self._guard.read():
            return mul_div(
                shares,
                self.total_assets() + self.virtual_offset,
                self.total_shares + self.virtual_offset,
                Rounding.FLOOR,
            )

    def preview_deposit(self, assets: int) -> int:
        return self.convert_to_shares(assets)

    def preview_redeem(self, shares: int) -> int:
        return self.convert_to_assets(shares)

    def share_price(self) -> int:
        return self.convert_to_assets(ONE_UNIT)

    # -- holder operations ---------------------------------------------------

    def deposit(self, caller: str, assets: int, receiver: str) -> int:
        require_amount(assets, "assets")
        with self._guard.transaction("deposit", caller):
            if assets == 0:
                raise ZeroAmount("deposit of zero assets", operation="deposit")
            if is_unset_address(receiver):
                raise ZeroAddress("deposit receiver is unset", operation="deposit")
            shares = self.convert_to_shares(assets)
            if shares == 0:
                raise ZeroAmount(
                    "deposit too small to mint a share",
                    operation="deposit",
                    details={"assets": assets},
                )
            self.asset.transfer_from(self.address, caller, self.address, assets)
            self.shares.mint(self.address, receiver, shares)
            self._emit(
                EngineEventType.DEPOSIT,
                {
                    "caller": normalize_address(caller),
                    "receiver": normalize_address(receiver),
                    "assets": assets,
                    "shares": shares,
                },
            )
        return shares

    def redeem(self, caller: str, shares: int, receiver: str) -> int:
        require_amount(shares, "shares")
        with self._guard.transaction("redeem", caller):
            if shares == 0:
                raise ZeroAmount("redeem of zero shares", operation="redeem")
            if is_unset_address(receiver):
                raise ZeroAddress("redeem receiver is unset", operation="redeem")
            assets = self.convert_to_assets(shares)
            liquidity = self.available_liquidity()
            if assets > liquidity:
                raise InsufficientLiquidity(
                    f"redeem needs {assets} but pool holds {liquidity}",
                    operation="redeem",
                    details={"assets": assets, "available_liquidity": liquidity},
                )
            self.shares.burn(self.address, caller, shares)
            self.asset.transfer(self.address, receiver, assets)
            self._emit(
                EngineEventType.REDEEM,
                {
                    "caller": normalize_address(caller),
                    "receiver": normalize_address(receiver),
                    "assets": assets,
                    "shares": shares,
                },
            )
        return assets

    # -- operator operations -------------------------------------------------

    def deploy_funds(self, caller: str, amount: int) -> None:
        require_amount(amount)
        with self._guard.transaction("deploy_funds", caller):
            self._require_operator(caller, "deploy_funds")
            if amount == 0:
                raise ZeroAmount("deploy of zero assets", operation="deploy_funds")
            liquidity = self.available_liquidity()
            if amount > liquidity:
                raise InsufficientLiquidity(
                    f"deploy of {amount} exceeds pool balance {liquidity}",
                    operation="deploy_funds",
                    details={"amount": amount, "available_liquidity": liquidity},
                )
            self._managed_assets += amount
            self.asset.transfer(self.address, self.operator, amount)
            self._emit(
                EngineEventType.FUNDS_DEPLOYED,
                {"amount": amount, "managed_assets": self._managed_assets},
            )

    def return_funds(self, caller: str, amount: int) -> None:
        require_amount(amount)
        with self._guard.transaction("return_funds", caller):
            self._require_operator(caller, "return_funds")
            if amount == 0:
                raise ZeroAmount("return of zero assets", operation="return_funds")
            if amount > self._managed_assets:
                raise ExcessiveReduction(
                    f"return of {amount} exceeds managed assets {self._managed_assets}",
                    operation="return_funds",
                    details={"amount": amount, "managed_assets": self._managed_assets},
                )
            self._managed_assets -= amount
            self.asset.transfer_from(self.address, self.operator, self.address, amount)
            self._emit(
                EngineEventType.FUNDS_RETURNED,
                {"amount": amount, "managed_assets": self._managed_assets},
            )

    def report_pnl(self, caller: str, pnl: int) -> None:
        if isinstance(pnl, bool) or not isinstance(pnl, int):
            raise TypeError(f"pnl must be an int of raw units, got {type(pnl).__name__}")
        with self._guard.transaction("report_pnl", caller):
            self._require_operator(caller, "report_pnl")
            if pnl < 0 and -pnl > self._managed_assets:
                raise ExcessiveReduction(
                    f"loss of {-pnl} exceeds managed assets {self._managed_assets}",
                    operation="report_pnl",
                    details={"pnl": pnl, "managed_assets": self._managed_assets},
                )
            self._managed_assets += pnl
            self._emit(
                EngineEventType.PNL_REPORTED,
                {"pnl": pnl, "managed_assets": self._managed_assets},
            )

    # -- state -----------------------------------------------------------------

    def snapshot(self) -> VaultState:
        return VaultState(managed_assets=self._managed_assets)

    def restore(self, state: VaultState) -> None:
        if state.managed_assets < 0:
            raise ValueError(f"managed_assets must be non-negative, got {state.managed_assets}")
        with self.lock:
            self._managed_assets = state.managed_assets

    def checkpoint(self) -> _VaultCheckpoint:
        return _VaultCheckpoint(state=self.snapshot(), event_count=len(self.events))

    def rollback(self, checkpoint: object) -> None:
        if not isinstance(checkpoint, _VaultCheckpoint):
            raise TypeError(f"unexpected checkpoint type {type(checkpoint).__name__}")
        with self.lock:
            self._managed_assets = checkpoint.state.managed_assets
            del self.events[checkpoint.event_count :]

    def _require_operator(self, caller: str, operation: str) -> None:
        if normalize_address(caller) != self.operator:
            raise Unauthorized(
                f"{caller!r} is not the vault operator",
                operation=operation,
                details={"caller": caller},
            )

    def _emit(self, event_type: EngineEventType, payload: dict[str, object]) -> None:
        event = EngineEvent(engine="vault", type=event_type, payload=payload)
        self.events.append(event)
        logger.info("vault_event", extra={"extra": event.as_log_payload()})
