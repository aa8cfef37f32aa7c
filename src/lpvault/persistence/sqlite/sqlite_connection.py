from __future__ import annotations

import sqlite3


def create_sqlite_connection(db_path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, timeout=30.0)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA busy_timeout = 5000")
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


def ensure_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS token_supply (
            symbol TEXT PRIMARY KEY,
            total_supply TEXT NOT NULL,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS token_balances (
            symbol TEXT NOT NULL,
            holder TEXT NOT NULL,
            amount TEXT NOT NULL,
            PRIMARY KEY (symbol, holder)
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS token_allowances (
            symbol TEXT NOT NULL,
            owner TEXT NOT NULL,
            spender TEXT NOT NULL,
            amount TEXT NOT NULL,
            PRIMARY KEY (symbol, owner, spender)
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS vault_state (
            state_id INTEGER PRIMARY KEY CHECK(state_id = 1),
            managed_assets TEXT NOT NULL,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS curve_state (
            state_id INTEGER PRIMARY KEY CHECK(state_id = 1),
            total_issued TEXT NOT NULL,
            reserve_balance TEXT NOT NULL,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
