"""SQLite storage adapter.

Implements the core KeyValueStorePort using a simple SQLite database.
"""

from __future__ import annotations

import sqlite3
from typing import List, Tuple

from core.errors import StoreUnavailable


class SQLiteKeyValueStore:
    """Thin SQLite wrapper that satisfies the KeyValueStorePort contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        # A connection per call keeps the store usable from worker threads.
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - kv: one row per key, values are opaque bytes
        """

        try:
            with self._connect() as conn:
                # Fields:
                # - key: slash-separated path, e.g. telegram/chats/<chat_id>
                # - value: encoded record
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS kv (
                        key TEXT PRIMARY KEY,
                        value BLOB NOT NULL
                    )
                    """
                )
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"cannot initialize {self._db_path}: {exc}") from exc

    def list(self, prefix: str) -> List[Tuple[str, bytes]]:
        """Return all (key, value) pairs whose key starts with ``prefix``."""

        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT key, value FROM kv WHERE substr(key, 1, ?) = ? ORDER BY key",
                    (len(prefix), prefix),
                ).fetchall()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"cannot list {prefix!r}: {exc}") from exc
        return [(row["key"], bytes(row["value"])) for row in rows]

    def put(self, key: str, value: bytes) -> None:
        """Upsert ``value`` under ``key``."""

        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO kv (key, value)
                    VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value
                    """,
                    (key, sqlite3.Binary(value)),
                )
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"cannot write {key!r}: {exc}") from exc

    def delete(self, key: str) -> None:
        """Delete ``key``; deleting a missing key is a no-op."""

        try:
            with self._connect() as conn:
                conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"cannot delete {key!r}: {exc}") from exc
