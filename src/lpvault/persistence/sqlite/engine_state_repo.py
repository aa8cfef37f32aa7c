from __future__ import annotations

import logging
import sqlite3

from lpvault.domain.models import CurveState, VaultState

logger = logging.getLogger(__name__)


class SqliteEngineStateRepo:
    def __init__(self, conn: sqlite3.Connection, *, read_only: bool = False) -> None:
        self._conn = conn
        self._read_only = read_only

    def _ensure_writable(self) -> None:
        if self._read_only:
            logger.warning("read_only_write_blocked", extra={"extra": {"repo": "engines"}})
            raise PermissionError("UnitOfWork is read-only; engine state writes are blocked")

    def get_vault_state(self) -> VaultState | None:
        row = self._conn.execute("SELECT managed_assets FROM vault_state WHERE state_id = 1").fetchone()
        if row is None:
            return None
        return VaultState(managed_assets=int(row["managed_assets"]))

    def save_vault_state(self, state: VaultState) -> None:
        self._ensure_writable()
        self._conn.execute(
            """
            INSERT INTO vault_state(state_id, managed_assets, updated_at)
            VALUES (1, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(state_id) DO UPDATE SET
                managed_assets=excluded.managed_assets,
                updated_at=excluded.updated_at
            """,
            (str(state.managed_assets),),
        )

    def get_curve_state(self) -> CurveState | None:
        row = self._conn.execute(
            "SELECT total_issued, reserve_balance FROM curve_state WHERE state_id = 1"
        ).fetchone()
        if row is None:
            return None
        return CurveState(
            total_issued=int(row["total_issued"]),
            reserve_balance=int(row["reserve_balance"]),
        )

    def save_curve_state(self, state: CurveState) -> None:
        self._ensure_writable()
        self._conn.execute(
            """
            INSERT INTO curve_state(state_id, total_issued, reserve_balance, updated_at)
            VALUES (1, ?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(state_id) DO UPDATE SET
                total_issued=excluded.total_issued,
                reserve_balance=excluded.reserve_balance,
                updated_at=excluded.updated_at
            """,
            (str(state.total_issued), str(state.reserve_balance)),
        )
