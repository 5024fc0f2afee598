"""
Infrastructure layer - concrete stores, lock, notifier, config and logging.
"""

from dropsync.infrastructure.excel_store import ExcelSheetStore, ExcelWorkbook
from dropsync.infrastructure.sqlite_lock import SqliteLock
from dropsync.infrastructure.sqlite_store import SqliteKeyValueStore

__all__ = [
    "ExcelWorkbook",
    "ExcelSheetStore",
    "SqliteKeyValueStore",
    "SqliteLock",
]
