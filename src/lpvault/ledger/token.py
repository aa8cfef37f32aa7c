from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from lpvault.domain.errors import (
    InsufficientAllowance,
    InsufficientBalance,
    Unauthorized,
    ZeroAddress,
)
from lpvault.domain.events import EngineEvent, EngineEventType
from lpvault.domain.fixed_point import DECIMALS
from lpvault.domain.models import TokenState, is_unset_address, normalize_address

logger = logging.getLogger(__name__)

MAX_ALLOWANCE = 2**256 - 1

TransferHook = Callable[["FungibleToken", str, str, int], None]


def require_amount(amount: int, name: str = "amount") -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise TypeError(f"{name} must be an int of raw units, got {type(amount).__name__}")
    if amount < 0:
        raise ValueError(f"{name} must be non-negative, got {amount}")
    return amount


@dataclass(frozen=True)
class _TokenCheckpoint:
    state: TokenState
    event_count: int


class FungibleToken:
    """Fungible balance ledger with the transfer/approve/allowance surface.

    ``mint``/``burn`` are reserved for the configured minter. An optional
    transfer hook runs after every balance movement; if it raises, the
    movement is undone.
    """

    def __init__(
        self,
        symbol: str,
        *,
        minter: str | None = None,
        decimals: int = DECIMALS,
        transfer_hook: TransferHook | None = None,
    ) -> None:
        self.symbol = symbol
        self.decimals = decimals
        self.minter = normalize_address(minter) if minter else None
        self.transfer_hook = transfer_hook
        self.lock = threading.RLock()
        self.events: list[EngineEvent] = []
        self._total_supply = 0
        self._balances: dict[str, int] = {}
        self._allowances: dict[tuple[str, str], int] = {}

    def __repr__(self) -> str:
        return f"FungibleToken(symbol={self.symbol!r}, total_supply={self._total_supply})"

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, holder: str) -> int:
        return self._balances.get(normalize_address(holder), 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((normalize_address(owner), normalize_address(spender)), 0)

    def holders(self) -> dict[str, int]:
        return {holder: amount for holder, amount in self._balances.items() if amount}

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        require_amount(amount)
        owner_key = self._require_address(owner, "approve", "owner")
        spender_key = self._require_address(spender, "approve", "spender")
        with self.lock:
            self._allowances[(owner_key, spender_key)] = amount
            self._emit(
                EngineEventType.APPROVAL,
                {"owner": owner_key, "spender": spender_key, "amount": amount},
            )
        return True

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        require_amount(amount)
        sender_key = self._require_address(sender, "transfer", "sender")
        to_key = self._require_address(to, "transfer", "to")
        with self.lock:
            self._require_balance(sender_key, amount, "transfer")
            self._move(sender_key, to_key, amount)
        return True

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool:
        require_amount(amount)
        spender_key = self._require_address(spender, "transfer_from", "spender")
        owner_key = self._require_address(owner, "transfer_from", "owner")
        to_key = self._require_address(to, "transfer_from", "to")
        with self.lock:
            allowed = self._allowances.get((owner_key, spender_key), 0)
            if allowed < amount:
                raise InsufficientAllowance(
                    f"{self.symbol} allowance {allowed} below {amount}",
                    operation="transfer_from",
                    details={"owner": owner_key, "spender": spender_key, "allowance": allowed},
                )
            self._require_balance(owner_key, amount, "transfer_from")
            # only a transfer hook can make the move fail
            checkpoint = self.checkpoint() if self.transfer_hook is not None else None
            if allowed != MAX_ALLOWANCE:
                self._allowances[(owner_key, spender_key)] = allowed - amount
            try:
                self._move(owner_key, to_key, amount)
            except BaseException:
                if checkpoint is not None:
                    self.rollback(checkpoint)
                raise
        return True

    def mint(self, caller: str, to: str, amount: int) -> None:
        require_amount(amount)
        self._require_minter(caller, "mint")
        to_key = self._require_address(to, "mint", "to")
        with self.lock:
            self._total_supply += amount
            self._balances[to_key] = self._balances.get(to_key, 0) + amount
            self._emit(EngineEventType.TRANSFER, {"from": None, "to": to_key, "amount": amount})

    def burn(self, caller: str, owner: str, amount: int) -> None:
        require_amount(amount)
        self._require_minter(caller, "burn")
        owner_key = self._require_address(owner, "burn", "owner")
        with self.lock:
            self._require_balance(owner_key, amount, "burn")
            self._balances[owner_key] -= amount
            self._total_supply -= amount
            self._emit(EngineEventType.TRANSFER, {"from": owner_key, "to": None, "amount": amount})

    def snapshot(self) -> TokenState:
        with self.lock:
            return TokenState(
                symbol=self.symbol,
                total_supply=self._total_supply,
                balances=dict(self._balances),
                allowances=dict(self._allowances),
            )

    def restore(self, state: TokenState) -> None:
        if state.symbol != self.symbol:
            raise ValueError(f"cannot restore {state.symbol} state into {self.symbol} ledger")
        if sum(state.balances.values()) != state.total_supply:
            raise ValueError(f"{state.symbol} balances do not sum to total supply")
        with self.lock:
            self._total_supply = state.total_supply
            self._balances = dict(state.balances)
            self._allowances = dict(state.allowances)

    def checkpoint(self) -> _TokenCheckpoint:
        return _TokenCheckpoint(state=self.snapshot(), event_count=len(self.events))

    def rollback(self, checkpoint: object) -> None:
        if not isinstance(checkpoint, _TokenCheckpoint):
            raise TypeError(f"unexpected checkpoint type {type(checkpoint).__name__}")
        with self.lock:
            self.restore(checkpoint.state)
            del self.events[checkpoint.event_count :]

    def _move(self, sender: str, to: str, amount: int) -> None:
        hook = self.transfer_hook
        checkpoint = self.checkpoint() if hook is not None else None
        self._balances[sender] = self._balances.get(sender, 0) - amount
        self._balances[to] = self._balances.get(to, 0) + amount
        self._emit(EngineEventType.TRANSFER, {"from": sender, "to": to, "amount": amount})
        if hook is None:
            return
        try:
            hook(self, sender, to, amount)
        except BaseException:
            self.rollback(checkpoint)
            raise

    def _require_balance(self, holder: str, amount: int, operation: str) -> None:
        balance = self._balances.get(holder, 0)
        if balance < amount:
            raise InsufficientBalance(
                f"{self.symbol} balance {balance} of {holder} below {amount}",
                operation=operation,
                details={"holder": holder, "balance": balance, "amount": amount},
            )

    def _require_minter(self, caller: str, operation: str) -> None:
        if self.minter is None or normalize_address(caller) != self.minter:
            raise Unauthorized(
                f"{caller!r} may not {operation} {self.symbol}",
                operation=operation,
                details={"caller": caller},
            )

    def _require_address(self, value: str, operation: str, role: str) -> str:
        if is_unset_address(value):
            raise ZeroAddress(
                f"{role} address is unset for {self.symbol} {operation}",
                operation=operation,
                details={"role": role},
            )
        return normalize_address(value)

    def _emit(self, event_type: EngineEventType, payload: dict[str, object]) -> None:
        event = EngineEvent(engine=self.symbol, type=event_type, payload=payload)
        self.events.append(event)
        logger.debug("token_event", extra={"extra": event.as_log_payload()})
