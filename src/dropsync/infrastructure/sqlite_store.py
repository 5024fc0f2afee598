"""
SQLite-backed key-value store for the persisted singletons.

Holds the deletion queue, the cleanup state and the recent-edit map,
each as one JSON string. Uses stdlib sqlite3 with no ORM.

Usage:
    store = SqliteKeyValueStore(Path("output/dropsync_state.db"))
    store.initialize_schema()
    store.set("deletion_queue", "[]")
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from dropsync.domain.errors import StoreError

logger = logging.getLogger(__name__)

# Schema version - increment when making breaking changes
SCHEMA_VERSION = 1

MEMORY_DB = ":memory:"


class SqliteKeyValueStore:
    """Persistent string key-value store."""

    def __init__(self, db_path: Path | str) -> None:
        """
        Initialize store.

        Args:
            db_path: SQLite file (created if missing) or ":memory:"
        """
        self.db_path = db_path if str(db_path) == MEMORY_DB else Path(db_path)
        self._connection: sqlite3.Connection | None = None
        logger.debug("SqliteKeyValueStore initialized: %s", self.db_path)

    def get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection (shared with the lock)."""
        if self._connection is None:
            if isinstance(self.db_path, Path):
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(str(self.db_path))
            self._connection.row_factory = sqlite3.Row
            logger.debug("Database connection established")
        return self._connection

    def close(self) -> None:
        if self._connection:
            self._connection.close()
            self._connection = None
            logger.debug("Database connection closed")

    # ========================================================================
    # Schema Management
    # ========================================================================

    def initialize_schema(self) -> None:
        """
        Create tables if they don't exist.

        Safe to call multiple times.
        """
        conn = self.get_connection()
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS job_locks (
                lock_key TEXT PRIMARY KEY,
                owner TEXT NOT NULL,
                acquired_at TEXT NOT NULL,
                expires_at TEXT NOT NULL
            )
        """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_meta (
                key TEXT PRIMARY KEY,
                value TEXT
            )
        """
        )
        conn.execute(
            "INSERT OR REPLACE INTO schema_meta (key, value) VALUES ('version', ?)",
            (str(SCHEMA_VERSION),),
        )
        conn.commit()
        logger.debug("State schema initialized (version %d)", SCHEMA_VERSION)

    # ========================================================================
    # Key-Value Operations
    # ========================================================================

    def get(self, key: str) -> str | None:
        try:
            row = self.get_connection().execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read '{key}': {e}") from e
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        conn = self.get_connection()
        try:
            conn.execute(
                """
                INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                               updated_at = excluded.updated_at
            """,
                (key, value, datetime.now(timezone.utc).isoformat()),
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreError(f"Failed to write '{key}': {e}") from e

    def delete(self, key: str) -> None:
        conn = self.get_connection()
        try:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreError(f"Failed to delete '{key}': {e}") from e

    def keys(self) -> list[str]:
        rows = self.get_connection().execute("SELECT key FROM kv_store ORDER BY key").fetchall()
        return [r["key"] for r in rows]
