"""
Dependency injection container for the application.

Creates the concrete infrastructure once per invocation and wires it
into the orchestrators. Tests build the services directly with
in-memory stores instead.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from dropsync.application.cleanup_machine import CleanupStateMachine
from dropsync.application.cleanup_service import CleanupService
from dropsync.application.cleanup_state import CleanupStateRepository
from dropsync.application.deletion_queue import DeletionQueue
from dropsync.application.recent_edits import EditObserver, RecentEditTracker
from dropsync.application.reports import ReportRenderer
from dropsync.application.sync_service import SyncService
from dropsync.domain.models import utcnow
from dropsync.domain.settings import DropSyncSettings
from dropsync.infrastructure.excel_store import ExcelWorkbook
from dropsync.infrastructure.notifier import create_sender
from dropsync.infrastructure.sqlite_lock import SqliteLock
from dropsync.infrastructure.sqlite_store import SqliteKeyValueStore

logger = logging.getLogger(__name__)

SYNC_LOCK_KEY = "dropsync:sync"
CLEANUP_LOCK_KEY = "dropsync:cleanup"


class Container:
    """
    Dependency injection container.

    Manages the creation and lifecycle of stores and services.
    """

    def __init__(
        self,
        settings: DropSyncSettings,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.settings = settings
        self.clock = clock
        self._kv_store: Optional[SqliteKeyValueStore] = None
        self._workbook: Optional[ExcelWorkbook] = None
        self._renderer: Optional[ReportRenderer] = None

    @property
    def kv_store(self) -> SqliteKeyValueStore:
        """Get the state database."""
        if self._kv_store is None:
            self._kv_store = SqliteKeyValueStore(self.settings.state_db_path)
            self._kv_store.initialize_schema()
        return self._kv_store

    @property
    def workbook(self) -> ExcelWorkbook:
        """Get the workbook (loaded on first sheet access)."""
        if self._workbook is None:
            self._workbook = ExcelWorkbook(self.settings.workbook_path)
        return self._workbook

    @property
    def renderer(self) -> ReportRenderer:
        if self._renderer is None:
            self._renderer = ReportRenderer(notes_cap=self.settings.cleanup.notes_cap)
        return self._renderer

    @property
    def queue(self) -> DeletionQueue:
        return DeletionQueue(self.kv_store)

    @property
    def states(self) -> CleanupStateRepository:
        return CleanupStateRepository(self.kv_store)

    @property
    def tracker(self) -> RecentEditTracker:
        return RecentEditTracker(self.kv_store)

    @property
    def edit_observer(self) -> EditObserver:
        return EditObserver(self.tracker, self.settings.headers.key)

    def lock(self, lock_key: str) -> SqliteLock:
        return SqliteLock(
            self.kv_store.get_connection(),
            lock_key,
            lease_seconds=self.settings.lock.lease_seconds,
            poll_interval_seconds=self.settings.lock.poll_interval_seconds,
        )

    def sync_service(self) -> SyncService:
        sheets = self.settings.sheets
        return SyncService(
            source=self.workbook.sheet(sheets.source),
            destination_a=self.workbook.sheet(sheets.destination_a),
            destination_b=self.workbook.sheet(sheets.destination_b),
            queue=self.queue,
            states=self.states,
            settings=self.settings,
            notifier=create_sender(self.settings.notifications),
            lock=self.lock(SYNC_LOCK_KEY),
            renderer=self.renderer,
            clock=self.clock,
        )

    def cleanup_service(self) -> CleanupService:
        machine = CleanupStateMachine(
            source=self.workbook.sheet(self.settings.sheets.source),
            queue=self.queue,
            states=self.states,
            tracker=self.tracker,
            settings=self.settings.cleanup,
            key_header=self.settings.headers.key,
            notifier=create_sender(self.settings.notifications),
            recipients=self.settings.notifications.recipients,
            renderer=self.renderer,
            clock=self.clock,
        )
        return CleanupService(
            machine,
            lock=self.lock(CLEANUP_LOCK_KEY),
            lock_wait_seconds=self.settings.lock.wait_seconds,
        )

    def close(self) -> None:
        if self._workbook is not None:
            self._workbook.close()
        if self._kv_store is not None:
            self._kv_store.close()
