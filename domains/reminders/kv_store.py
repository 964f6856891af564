"""Persistent key-value store for reminder state.

String keys to string values in a local SQLite file, so scheduled reminder
handles survive app restarts. Blocking SQLite calls run in a worker thread
to keep the event loop free.
"""

import asyncio
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from logger import logger
from . import config


class KeyValueStore:
    """Async string-keyed store backed by a single SQLite table."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize the store.

        Args:
            db_path: SQLite file path (default from config)
        """
        self.db_path = db_path or config.KV_STORE_DB
        self._connection: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection with WAL mode."""
        if self._connection is not None:
            return self._connection

        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._connection = sqlite3.connect(
            self.db_path,
            check_same_thread=False,  # Used from asyncio.to_thread workers
            timeout=10.0
        )
        self._connection.execute("PRAGMA journal_mode=WAL")
        self._connection.execute("PRAGMA busy_timeout=5000")
        self._connection.executescript("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at INTEGER NOT NULL
            );
        """)
        self._connection.commit()

        logger.info(f"Key-value store initialized: {self.db_path}")
        return self._connection

    @contextmanager
    def _transaction(self):
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def _get(self, key: str) -> Optional[str]:
        with self._lock:
            row = self._get_connection().execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        return row[0] if row else None

    def _set(self, key: str, value: str) -> None:
        with self._lock, self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                               updated_at = excluded.updated_at
                """,
                (key, value, int(time.time()))
            )

    def _remove(self, key: str) -> None:
        with self._lock, self._transaction() as conn:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))

    async def get_item(self, key: str) -> Optional[str]:
        """Return the stored value for key, or None if absent."""
        return await asyncio.to_thread(self._get, key)

    async def set_item(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        await asyncio.to_thread(self._set, key, value)

    async def remove_item(self, key: str) -> None:
        """Delete key. Missing keys are ignored."""
        await asyncio.to_thread(self._remove, key)

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None
