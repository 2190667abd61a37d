from __future__ import annotations

import logging
import sqlite3

from domain.models import AppState
from domain.repositories import StateStorage
from infrastructure.db.state_codec import decode_state, encode_state

logger = logging.getLogger(__name__)

STORAGE_KEY = "poker_ledger_data_v1"


class SqliteStateStorage(StateStorage):
    """
    SQLite-backed implementation of `StateStorage`.

    The ledger is kept as a single JSON document in a `kv_store` table,
    under `STORAGE_KEY`. The table is created if needed.
    """

    def __init__(self, db_path: str, key: str = STORAGE_KEY) -> None:
        self._db_path = db_path
        self._key = key
        self._ensure_table()

    def _get_connection(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path)

    def _ensure_table(self) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            conn.commit()

    def load(self) -> AppState:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute("SELECT value FROM kv_store WHERE key = ?", (self._key,))
            row = cur.fetchone()
            if not row:
                logger.debug("No stored ledger under %r, starting empty", self._key)
                return AppState()
            return decode_state(row[0])

    def save(self, state: AppState) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO kv_store (key, value)
                VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (self._key, encode_state(state)),
            )
            conn.commit()
        logger.debug(
            "Saved ledger: %d sessions, %d players, %d transactions",
            len(state.sessions),
            len(state.players),
            len(state.transactions),
        )
