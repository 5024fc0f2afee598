"""
Tests for the SQLite key-value store and the cooperative job lock.
"""

import tempfile
import unittest
from datetime import timedelta
from pathlib import Path

from dropsync.application.locking import acquire_best_effort, best_effort_lock
from dropsync.domain.models import utcnow
from dropsync.infrastructure.sqlite_lock import SqliteLock
from dropsync.infrastructure.sqlite_store import SqliteKeyValueStore


class TestSqliteKeyValueStore(unittest.TestCase):

    def setUp(self):
        self.store = SqliteKeyValueStore(":memory:")
        self.store.initialize_schema()

    def tearDown(self):
        self.store.close()

    def test_get_missing(self):
        self.assertIsNone(self.store.get("nothing"))

    def test_set_get_overwrite(self):
        self.store.set("k", "one")
        self.store.set("k", "two")
        self.assertEqual(self.store.get("k"), "two")
        self.assertEqual(self.store.keys(), ["k"])

    def test_delete(self):
        self.store.set("k", "v")
        self.store.delete("k")
        self.store.delete("k")
        self.assertIsNone(self.store.get("k"))

    def test_schema_is_idempotent(self):
        self.store.set("k", "v")
        self.store.initialize_schema()
        self.assertEqual(self.store.get("k"), "v")


class TestFileBackedStore(unittest.TestCase):

    def test_values_survive_reopen(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "nested" / "state.db"
            first = SqliteKeyValueStore(path)
            first.initialize_schema()
            first.set("deletion_queue", '["k1"]')
            first.close()

            second = SqliteKeyValueStore(path)
            second.initialize_schema()
            self.assertEqual(second.get("deletion_queue"), '["k1"]')
            second.close()


class TestSqliteLock(unittest.TestCase):

    def setUp(self):
        self.store = SqliteKeyValueStore(":memory:")
        self.store.initialize_schema()
        self.conn = self.store.get_connection()

    def tearDown(self):
        self.store.close()

    def _lock(self, owner, key="dropsync:cleanup", **kwargs):
        return SqliteLock(self.conn, key, poll_interval_seconds=0.01, owner=owner, **kwargs)

    def test_second_owner_is_refused(self):
        first, second = self._lock("a"), self._lock("b")
        self.assertTrue(first.try_acquire(0))
        self.assertFalse(second.try_acquire(30))
        self.assertTrue(second.is_locked())

    def test_release_frees_lock(self):
        first, second = self._lock("a"), self._lock("b")
        first.try_acquire(0)
        first.release()
        self.assertFalse(first.is_locked())
        self.assertTrue(second.try_acquire(0))

    def test_reentrant_for_same_owner(self):
        lock = self._lock("a")
        self.assertTrue(lock.try_acquire(0))
        self.assertTrue(lock.try_acquire(0))

    def test_expired_lease_is_reaped(self):
        stale = utcnow() - timedelta(hours=2)
        self.conn.execute(
            "INSERT INTO job_locks (lock_key, owner, acquired_at, expires_at) VALUES (?, ?, ?, ?)",
            ("dropsync:cleanup", "crashed", stale.isoformat(), (stale + timedelta(hours=1)).isoformat()),
        )
        self.conn.commit()
        self.assertTrue(self._lock("b").try_acquire(0))

    def test_locks_are_per_key(self):
        self.assertTrue(self._lock("a", key="dropsync:sync").try_acquire(0))
        self.assertTrue(self._lock("b", key="dropsync:cleanup").try_acquire(0))


class TestBestEffortLock(unittest.TestCase):

    def setUp(self):
        self.store = SqliteKeyValueStore(":memory:")
        self.store.initialize_schema()
        self.conn = self.store.get_connection()

    def tearDown(self):
        self.store.close()

    def test_no_lock_is_not_acquired(self):
        self.assertFalse(acquire_best_effort(None, 1).acquired)

    def test_contention_proceeds_without_lock(self):
        holder = SqliteLock(self.conn, "job", owner="holder")
        holder.try_acquire(0)
        contender = SqliteLock(self.conn, "job", owner="contender", poll_interval_seconds=0.01)

        ran = False
        with best_effort_lock(contender, 0.05, "cleanup") as result:
            ran = True
            self.assertFalse(result.acquired)
        self.assertTrue(ran)
        # the holder's lock is untouched
        self.assertTrue(holder.is_locked())

    def test_lock_released_on_exit(self):
        lock = SqliteLock(self.conn, "job", owner="a")
        with best_effort_lock(lock, 0, "sync") as result:
            self.assertTrue(result.acquired)
            self.assertTrue(lock.is_locked())
        self.assertFalse(lock.is_locked())

    def test_lock_errors_count_as_not_acquired(self):
        class BrokenLock:
            def try_acquire(self, timeout_ms):
                raise RuntimeError("db locked")

            def release(self):
                raise AssertionError("must not release an unacquired lock")

        with best_effort_lock(BrokenLock(), 0, "sync") as result:
            self.assertFalse(result.acquired)


if __name__ == "__main__":
    unittest.main()
