"""
Shared fixtures: in-memory stores, a controllable clock and a
recording notifier.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parents[1] / "src"))

import pytest
from openpyxl import Workbook

from dropsync.application.cleanup_state import CleanupStateRepository
from dropsync.application.deletion_queue import DeletionQueue
from dropsync.application.recent_edits import RecentEditTracker
from dropsync.infrastructure.excel_store import ExcelWorkbook
from dropsync.infrastructure.sqlite_store import SqliteKeyValueStore

START = datetime(2025, 3, 14, 9, 0, 0, tzinfo=timezone.utc)

SOURCE_HEADER = ["ID", "Name", "Status", "Type", "Review", "Payment Set", "Jan 2025"]
DEST_HEADER = ["ID", "Name", "Type", "Transferred On"]


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


class RecordingNotifier:
    """NotificationSender that keeps every report."""

    def __init__(self):
        self.sent = []

    def send(self, recipients, subject, html_body):
        self.sent.append({"recipients": list(recipients), "subject": subject, "html": html_body})
        return True

    @property
    def subjects(self):
        return [s["subject"] for s in self.sent]


class MemorySheet:
    """
    List-backed TabularStore.

    rows[0] is the header; row index i maps to rows[i - 1].
    """

    def __init__(self, header, data=()):
        self.rows = [list(header)] + [list(r) for r in data]
        self.deleted_blocks = []
        self.flushes = 0

    def read_rows(self, start_row, end_row, start_col=1, end_col=None):
        end_col = end_col or self.last_column_index()
        out = []
        for r in range(start_row, end_row + 1):
            row = self.rows[r - 1] if r - 1 < len(self.rows) else []
            cells = [row[c - 1] if c - 1 < len(row) else None for c in range(start_col, end_col + 1)]
            out.append(cells)
        return out

    def append_rows(self, rows):
        self.rows.extend(list(r) for r in rows)

    def delete_row_block(self, start_index, count):
        assert start_index >= 2, "header must never be deleted"
        self.deleted_blocks.append((start_index, count))
        del self.rows[start_index - 1:start_index - 1 + count]

    def last_row_index(self):
        return len(self.rows)

    def last_column_index(self):
        return len(self.rows[0])

    def header(self):
        return list(self.rows[0])

    def flush(self):
        self.flushes += 1

    def keys(self):
        return [r[0] for r in self.rows[1:]]


@pytest.fixture
def kv_store():
    store = SqliteKeyValueStore(":memory:")
    store.initialize_schema()
    yield store
    store.close()


@pytest.fixture
def queue(kv_store):
    return DeletionQueue(kv_store)


@pytest.fixture
def states(kv_store):
    return CleanupStateRepository(kv_store)


@pytest.fixture
def tracker(kv_store):
    return RecentEditTracker(kv_store)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


def build_workbook(sheets):
    """
    Build an in-memory ExcelWorkbook.

    Args:
        sheets: Mapping of sheet name -> list of rows (first row is the header)
    """
    wb = Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(name)
        for row in rows:
            ws.append(list(row))
    return ExcelWorkbook(workbook=wb)
