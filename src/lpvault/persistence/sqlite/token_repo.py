from __future__ import annotations

import logging
import sqlite3

from lpvault.domain.models import TokenState

logger = logging.getLogger(__name__)


class SqliteTokenRepo:
    def __init__(self, conn: sqlite3.Connection, *, read_only: bool = False) -> None:
        self._conn = conn
        self._read_only = read_only

    def _ensure_writable(self) -> None:
        if self._read_only:
            logger.warning("read_only_write_blocked", extra={"extra": {"repo": "tokens"}})
            raise PermissionError("UnitOfWork is read-only; token writes are blocked")

    def load(self, symbol: str) -> TokenState | None:
        row = self._conn.execute(
            "SELECT total_supply FROM token_supply WHERE symbol = ?", (symbol,)
        ).fetchone()
        if row is None:
            return None
        balances = {
            str(item["holder"]): int(item["amount"])
            for item in self._conn.execute(
                "SELECT holder, amount FROM token_balances WHERE symbol = ?", (symbol,)
            )
        }
        allowances = {
            (str(item["owner"]), str(item["spender"])): int(item["amount"])
            for item in self._conn.execute(
                "SELECT owner, spender, amount FROM token_allowances WHERE symbol = ?", (symbol,)
            )
        }
        return TokenState(
            symbol=symbol,
            total_supply=int(row["total_supply"]),
            balances=balances,
            allowances=allowances,
        )

    def save(self, state: TokenState) -> None:
        self._ensure_writable()
        self._conn.execute(
            """
            INSERT INTO token_supply(symbol, total_supply, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(symbol) DO UPDATE SET
                total_supply=excluded.total_supply,
                updated_at=excluded.updated_at
            """,
            (state.symbol, str(state.total_supply)),
        )
        self._conn.execute("DELETE FROM token_balances WHERE symbol = ?", (state.symbol,))
        self._conn.executemany(
            "INSERT INTO token_balances(symbol, holder, amount) VALUES (?, ?, ?)",
            [
                (state.symbol, holder, str(amount))
                for holder, amount in sorted(state.balances.items())
                if amount
            ],
        )
        self._conn.execute("DELETE FROM token_allowances WHERE symbol = ?", (state.symbol,))
        self._conn.executemany(
            "INSERT INTO token_allowances(symbol, owner, spender, amount) VALUES (?, ?, ?, ?)",
            [
                (state.symbol, owner, spender, str(amount))
                for (owner, spender), amount in sorted(state.allowances.items())
                if amount
            ],
        )
