"""
Tests for the sync orchestrator.

Uses list-backed sheets, the in-memory state database and a recording
notifier; no workbook file is involved.
"""

import pytest

from dropsync.application.sync_service import SyncService, expand_default, read_key_column
from dropsync.domain.errors import ConfigurationError
from dropsync.domain.models import CleanupState
from dropsync.domain.settings import DropSyncSettings

from conftest import DEST_HEADER, SOURCE_HEADER, START, MemorySheet


class FakeLock:
    def __init__(self, available=True):
        self.available = available
        self.acquired = 0
        self.released = 0

    def try_acquire(self, timeout_ms):
        if self.available:
            self.acquired += 1
        return self.available

    def release(self):
        self.released += 1


def source_rows():
    return [
        ["K1", "Ann", "Dropped", "Standard", None, "Paid", None],
        ["K2", "Bob", "Dropped", "Relo App", None, "Paid", None],
        ["K3", "Cat", "Dropped", "Standard", "NED", "Paid", None],
        ["K4", "Dan", "Dropped", "Standard", None, "Paid", None],
        ["K5", "Eve", "Active", "Standard", None, "Paid", None],
    ]


@pytest.fixture
def sheets():
    return {
        "source": MemorySheet(SOURCE_HEADER, source_rows()),
        "dest_a": MemorySheet(DEST_HEADER, [["K4", "Dan", "Standard", "2025-01-02"]]),
        "dest_b": MemorySheet(DEST_HEADER),
    }


def make_service(sheets, queue, states, notifier, clock, lock=None):
    return SyncService(
        source=sheets["source"],
        destination_a=sheets["dest_a"],
        destination_b=sheets["dest_b"],
        queue=queue,
        states=states,
        settings=DropSyncSettings(),
        notifier=notifier,
        lock=lock,
        clock=clock,
    )


class TestSyncRun:

    def test_routes_rows_and_replaces_queue(self, sheets, queue, states, notifier, clock):
        result = make_service(sheets, queue, states, notifier, clock).run()

        assert result.success
        assert sheets["dest_a"].rows[1:] == [
            ["K4", "Dan", "Standard", "2025-01-02"],
            ["K1", "Ann", "Standard", "2025-03-14"],
        ]
        assert sheets["dest_b"].rows[1:] == [["K2", "Bob", "Relo App", "2025-03-14"]]
        assert queue.read() == ["k1", "k2", "k4"]
        assert result.queued == ["k1", "k2", "k4"]

    def test_sends_one_report(self, sheets, queue, states, notifier, clock):
        make_service(sheets, queue, states, notifier, clock).run()

        assert notifier.subjects == [
            "Dropped transfer: 1 to Transferred, 1 to Relo App, 3 queued for cleanup"
        ]
        html = notifier.sent[0]["html"]
        assert "K3" in html
        assert "Review is &#39;NED&#39;" in html

    def test_source_rows_are_not_deleted(self, sheets, queue, states, notifier, clock):
        make_service(sheets, queue, states, notifier, clock).run()
        assert sheets["source"].keys() == ["K1", "K2", "K3", "K4", "K5"]

    def test_second_run_does_not_duplicate(self, sheets, queue, states, notifier, clock):
        service = make_service(sheets, queue, states, notifier, clock)
        service.run()
        second = service.run()

        assert second.run.routed_a == []
        assert second.run.routed_b == []
        assert sorted(second.run.duplicates) == ["k1", "k2", "k4"]
        assert len(sheets["dest_a"].rows) == 3
        assert len(sheets["dest_b"].rows) == 2
        assert queue.read() == ["k1", "k2", "k4"]

    def test_success_discards_inflight_cleanup_state(self, sheets, queue, states, notifier, clock):
        queue.replace(["stale"])
        states.save(CleanupState.seed(["stale"], START))

        make_service(sheets, queue, states, notifier, clock).run()

        assert states.load() is None
        assert "stale" not in queue.read()


class TestSyncFailure:

    def test_failure_leaves_queue_and_state_untouched(self, queue, states, notifier, clock):
        broken = {
            "source": MemorySheet(["ID", "Status", "Type"], [["K1", "Dropped", "Standard"]]),
            "dest_a": MemorySheet(DEST_HEADER),
            "dest_b": MemorySheet(DEST_HEADER),
        }
        queue.replace(["pending"])
        states.save(CleanupState.seed(["pending"], START))

        result = make_service(broken, queue, states, notifier, clock).run()

        assert not result.success
        assert "ConfigurationError" in result.error
        assert queue.read() == ["pending"]
        assert states.load().original_queue == ["pending"]
        assert len(notifier.sent) == 1
        assert notifier.subjects[0].startswith("Dropped transfer FAILED: ConfigurationError")

    def test_destination_without_key_header_fails(self, sheets, queue, states, notifier, clock):
        sheets["dest_b"] = MemorySheet(["Name"])
        result = make_service(sheets, queue, states, notifier, clock).run()
        assert not result.success
        assert "Relo App" in result.error


class TestSyncLocking:

    def test_lock_released_after_run(self, sheets, queue, states, notifier, clock):
        lock = FakeLock()
        result = make_service(sheets, queue, states, notifier, clock, lock=lock).run()
        assert result.lock_acquired
        assert (lock.acquired, lock.released) == (1, 1)

    def test_runs_without_lock_when_busy(self, sheets, queue, states, notifier, clock):
        lock = FakeLock(available=False)
        result = make_service(sheets, queue, states, notifier, clock, lock=lock).run()
        assert result.success
        assert not result.lock_acquired
        assert lock.released == 0


def test_read_key_column(sheets):
    assert read_key_column(sheets["dest_a"], "id", "Transferred") == ["K4"]
    assert read_key_column(sheets["dest_b"], "ID", "Relo App") == []


def test_read_key_column_without_header():
    with pytest.raises(ConfigurationError):
        read_key_column(MemorySheet(["Name"]), "ID", "Transferred")


def test_expand_default():
    assert expand_default("{today}", START) == "2025-03-14"
    assert expand_default("on {now}", START) == "on 2025-03-14T09:00:00+00:00"
    assert expand_default("manual", START) == "manual"
