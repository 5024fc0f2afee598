"""
SQLite cooperative lock - MutualExclusion with bounded polling.

Lock rows expire after a lease so a crashed holder self-heals. The
lock is cooperative only: nothing stops a process that skips it.

Usage:
    lock = SqliteLock(store.get_connection(), "cleanup")
    if lock.try_acquire(timeout_ms=30_000):
        try:
            run_job()
        finally:
            lock.release()
"""

from __future__ import annotations

import logging
import os
import socket
import sqlite3
import time
import uuid
from datetime import datetime, timedelta

from dropsync.domain.models import utcnow

logger = logging.getLogger(__name__)


class SqliteLock:
    """Cooperative lock stored in the job_locks table."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        lock_key: str,
        lease_seconds: int = 3600,
        poll_interval_seconds: float = 0.5,
        owner: str | None = None,
    ) -> None:
        self._conn = conn
        self.lock_key = lock_key
        self.lease_seconds = lease_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self.owner = owner or f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"

    def _attempt(self) -> bool:
        """Single non-blocking acquisition attempt."""
        now = utcnow()
        expires_at = now + timedelta(seconds=self.lease_seconds)
        cursor = self._conn.cursor()

        # Reap an expired holder first
        cursor.execute(
            "DELETE FROM job_locks WHERE lock_key = ? AND expires_at < ?",
            (self.lock_key, now.isoformat()),
        )
        try:
            cursor.execute(
                """
                INSERT INTO job_locks (lock_key, owner, acquired_at, expires_at)
                VALUES (?, ?, ?, ?)
                """,
                (self.lock_key, self.owner, now.isoformat(), expires_at.isoformat()),
            )
            self._conn.commit()
            return True
        except sqlite3.IntegrityError:
            self._conn.rollback()
            row = cursor.execute(
                "SELECT owner FROM job_locks WHERE lock_key = ?", (self.lock_key,)
            ).fetchone()
            if row and row[0] == self.owner:
                # Re-entrant: extend our own lease
                cursor.execute(
                    "UPDATE job_locks SET expires_at = ? WHERE lock_key = ? AND owner = ?",
                    (expires_at.isoformat(), self.lock_key, self.owner),
                )
                self._conn.commit()
                return True
            return False

    def try_acquire(self, timeout_ms: int) -> bool:
        """
        Poll for the lock until timeout_ms elapses.

        Returns:
            True if acquired within the wait budget
        """
        deadline = time.monotonic() + max(0, timeout_ms) / 1000
        while True:
            if self._attempt():
                logger.debug("Lock '%s' acquired by %s", self.lock_key, self.owner)
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.debug("Lock '%s' busy; wait budget spent", self.lock_key)
                return False
            time.sleep(min(self.poll_interval_seconds, remaining))

    def release(self) -> None:
        self._conn.execute(
            "DELETE FROM job_locks WHERE lock_key = ? AND owner = ?",
            (self.lock_key, self.owner),
        )
        self._conn.commit()
        logger.debug("Lock '%s' released", self.lock_key)

    def is_locked(self) -> bool:
        row = self._conn.execute(
            "SELECT expires_at FROM job_locks WHERE lock_key = ?", (self.lock_key,)
        ).fetchone()
        if row is None:
            return False
        return datetime.fromisoformat(row[0]) >= utcnow()
