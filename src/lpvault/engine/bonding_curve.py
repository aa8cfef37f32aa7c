from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from lpvault.domain.curve_math import (
    CurveParams,
    buy_cost,
    price_at,
    sell_return,
    tokens_for_stable,
)
from lpvault.domain.errors import InsufficientLiquidity, InsufficientTokens, ZeroAddress, ZeroAmount
from lpvault.domain.events import EngineEvent, EngineEventType
from lpvault.domain.models import CurveState, is_unset_address, normalize_address
from lpvault.engine.guard import EngineGuard
from lpvault.ledger.token import FungibleToken, require_amount

logger = logging.getLogger(__name__)

DEFAULT_BASE_PRICE = 10_000
DEFAULT_SLOPE = 10_000


@dataclass(frozen=True)
class CurveFill:
    tokens: int
    stable_amount: int
    price_after: int


@dataclass(frozen=True)
class _CurveCheckpoint:
    state: CurveState
    event_count: int


class BondingCurveMarket:
    """Mints and burns a token against a stablecoin reserve along ``P(s) = base + slope*s``."""

    def __init__(
        self,
        asset: FungibleToken,
        *,
        address: str = "curve",
        token_symbol: str = "RSIM",
        base_price: int = DEFAULT_BASE_PRICE,
        slope: int = DEFAULT_SLOPE,
    ) -> None:
        if is_unset_address(address):
            raise ZeroAddress("curve address must be set", operation="init")
        self.asset = asset
        self.address = normalize_address(address)
        self.token = FungibleToken(token_symbol, minter=self.address, decimals=asset.decimals)
        self.params = CurveParams(
            base_price=base_price,
            slope=slope,
            scale=10**self.token.decimals,
        )
        self.lock = threading.RLock()
        self.events: list[EngineEvent] = []
        self._total_issued = 0
        self._reserve_balance = 0
        self._guard = EngineGuard("curve", lambda: (self, self.asset, self.token))

    # -- reads -------------------------------------------------------------

    @property
    def total_issued(self) -> int:
        return self._total_issued

    @property
    def reserve_balance(self) -> int:
        return self._reserve_balance

    def balance_of(self, holder: str) -> int:
        return self.token.balance_of(holder)

    def get_price(self) -> int:
        return price_at(self.params, self._total_issued)

    def get_buy_cost(self, tokens: int) -> int:
        require_amount(tokens, "tokens")
        with self._guard.read():
            return buy_cost(self.params, self._total_issued, tokens)

    def get_sell_return(self, tokens: int) -> int:
        require_amount(tokens, "tokens")
        with self._guard.read():
            if tokens > self._total_issued:
                raise InsufficientTokens(
                    f"sell of {tokens} exceeds supply {self._total_issued}",
                    operation="get_sell_return",
                    details={"tokens": tokens, "total_issued": self._total_issued},
                )
            return sell_return(self.params, self._total_issued, tokens)

    def quote_buy(self, stable_in: int) -> CurveFill:
        require_amount(stable_in, "stable_in")
        with self._guard.read():
            tokens = tokens_for_stable(self.params, self._total_issued, stable_in)
            cost = buy_cost(self.params, self._total_issued, tokens) if tokens else 0
            return CurveFill(
                tokens=tokens,
                stable_amount=cost,
                price_after=price_at(self.params, self._total_issued + tokens),
            )

    # -- mutations -----------------------------------------------------------

    def buy(self, caller: str, stable_in: int) -> CurveFill:
        """Mint the most tokens ``stable_in`` affords; only their exact cost is pulled."""

        require_amount(stable_in, "stable_in")
        with self._guard.transaction("buy", caller):
            if stable_in == 0:
                raise ZeroAmount("buy with zero stablecoin", operation="buy")
            supply = self._total_issued
            tokens = tokens_for_stable(self.params, supply, stable_in)
            if tokens == 0:
                raise ZeroAmount(
                    "stablecoin amount too small to mint a token unit",
                    operation="buy",
                    details={"stable_in": stable_in, "price": self.get_price()},
                )
            cost = buy_cost(self.params, supply, tokens)
            self.asset.transfer_from(self.address, caller, self.address, cost)
            self.token.mint(self.address, caller, tokens)
            self._total_issued = supply + tokens
            self._reserve_balance += cost
            fill = CurveFill(tokens=tokens, stable_amount=cost, price_after=self.get_price())
            self._emit(
                EngineEventType.TOKENS_BOUGHT,
                {
                    "buyer": normalize_address(caller),
                    "stable_in": stable_in,
                    "cost": cost,
                    "tokens": tokens,
                    "price_after": fill.price_after,
                },
            )
        return fill

    def sell(self, caller: str, tokens: int) -> CurveFill:
        require_amount(tokens, "tokens")
        with self._guard.transaction("sell", caller):
            if tokens == 0:
                raise ZeroAmount("sell of zero tokens", operation="sell")
            held = self.token.balance_of(caller)
            if tokens > held:
                raise InsufficientTokens(
                    f"sell of {tokens} exceeds held balance {held}",
                    operation="sell",
                    details={"tokens": tokens, "balance": held},
                )
            supply = self._total_issued
            proceeds = sell_return(self.params, supply, tokens)
            if proceeds > self._reserve_balance:
                raise InsufficientLiquidity(
                    f"sell return {proceeds} exceeds reserve {self._reserve_balance}",
                    operation="sell",
                    details={"proceeds": proceeds, "reserve_balance": self._reserve_balance},
                )
            self.token.burn(self.address, caller, tokens)
            self._total_issued = supply - tokens
            self._reserve_balance -= proceeds
            self.asset.transfer(self.address, caller, proceeds)
            fill = CurveFill(tokens=tokens, stable_amount=proceeds, price_after=self.get_price())
            self._emit(
                EngineEventType.TOKENS_SOLD,
                {
                    "seller": normalize_address(caller),
                    "tokens": tokens,
                    "proceeds": proceeds,
                    "price_after": fill.price_after,
                },
            )
        return fill

    # -- state -----------------------------------------------------------------

    def snapshot(self) -> CurveState:
        return CurveState(total_issued=self._total_issued, reserve_balance=self._reserve_balance)

    def restore(self, state: CurveState) -> None:
        if state.total_issued < 0 or state.reserve_balance < 0:
            raise ValueError("curve state counters must be non-negative")
        with self.lock:
            self._total_issued = state.total_issued
            self._reserve_balance = state.reserve_balance

    def checkpoint(self) -> _CurveCheckpoint:
        return _CurveCheckpoint(state=self.snapshot(), event_count=len(self.events))

    def rollback(self, checkpoint: object) -> None:
        if not isinstance(checkpoint, _CurveCheckpoint):
            raise TypeError(f"unexpected checkpoint type {type(checkpoint).__name__}")
        with self.lock:
            self._total_issued = checkpoint.state.total_issued
            self._reserve_balance = checkpoint.state.reserve_balance
            del self.events[checkpoint.event_count :]

    def _emit(self, event_type: EngineEventType, payload: dict[str, object]) -> None:
        event = EngineEvent(engine="curve", type=event_type, payload=payload)
        self.events.append(event)
        logger.info("curve_event", extra={"extra": event.as_log_payload()})
