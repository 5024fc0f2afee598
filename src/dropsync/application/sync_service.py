"""
Sync Service - Thin Orchestrator for the transfer job.

Runs once per scheduled invocation and delegates all rule logic to
the domain classifier.

Workflow:
    1. Best-effort lock
    2. Classify every source row (destination keys feed duplicate detection)
    3. Append routed rows to destinations A and B, header-aligned
    4. Fill blank derived fields with configured defaults
    5. Replace the deletion queue and discard any in-flight cleanup state
    6. Send the report, release the lock

On any failure an error report is sent and the queue and cleanup
state are left untouched, so pending deletions are never dropped.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Sequence

from dropsync.application.cleanup_state import CleanupStateRepository
from dropsync.application.deletion_queue import DeletionQueue
from dropsync.application.locking import best_effort_lock
from dropsync.application.protocols import MutualExclusion, NotificationSender, TabularStore
from dropsync.application.reports import Report, ReportRenderer
from dropsync.domain.classifier import HeaderMap, RecordClassifier
from dropsync.domain.errors import ConfigurationError
from dropsync.domain.keys import is_blank, normalize_key
from dropsync.domain.models import (
    ClassificationResult,
    ClassificationRun,
    Decision,
    SyncResult,
    utcnow,
)
from dropsync.domain.settings import DropSyncSettings

logger = logging.getLogger(__name__)


def read_key_column(store: TabularStore, key_header: str, sheet_name: str = "") -> list[Any]:
    """Read every data value of the key column of a sheet."""
    header_map = HeaderMap(store.header())
    if not len(header_map):
        raise ConfigurationError(f"Sheet '{sheet_name}' has no header row")
    col = header_map.require(key_header, sheet_name) + 1
    last_row = store.last_row_index()
    if last_row < 2:
        return []
    return [row[0] if row else None for row in store.read_rows(2, last_row, col, col)]


def expand_default(template: str, now: datetime) -> str:
    """Expand {today}/{now} placeholders of a destination default."""
    return (
        template.replace("{today}", now.date().isoformat())
        .replace("{now}", now.isoformat(timespec="seconds"))
    )


class SyncService:
    """
    Orchestrator for the transfer job.

    Usage:
        service = SyncService(source, dest_a, dest_b, queue, states, settings,
                              notifier=sender, lock=lock)
        result = service.run()
    """

    def __init__(
        self,
        source: TabularStore,
        destination_a: TabularStore,
        destination_b: TabularStore,
        queue: DeletionQueue,
        states: CleanupStateRepository,
        settings: DropSyncSettings,
        notifier: NotificationSender | None = None,
        lock: MutualExclusion | None = None,
        renderer: ReportRenderer | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.source = source
        self.destination_a = destination_a
        self.destination_b = destination_b
        self.queue = queue
        self.states = states
        self.settings = settings
        self.notifier = notifier
        self.lock = lock
        self.renderer = renderer or ReportRenderer(notes_cap=settings.cleanup.notes_cap)
        self.clock = clock

    def run(self) -> SyncResult:
        """Execute one sync invocation."""
        with best_effort_lock(self.lock, self.settings.lock.wait_seconds, "sync") as lock_result:
            started = self.clock()
            try:
                run = self.classify(started)
                self.write_destinations(run, started)
                queued = self.queue.replace(run.deletion_queue)
                # A fresh run supersedes any partially completed cleanup cycle
                self.states.clear()
            except Exception as e:
                error = f"{type(e).__name__}: {e}"
                logger.exception("Sync failed: %s", error)
                report = self.renderer.sync_error_report(error, self.clock())
                self._notify(report)
                return SyncResult(
                    success=False,
                    lock_acquired=lock_result.acquired,
                    report_subject=report.subject,
                    error=error,
                )

            report = self.renderer.sync_report(
                run,
                queued,
                self.settings.sheets.destination_a,
                self.settings.sheets.destination_b,
                self.clock(),
            )
            self._notify(report)
            return SyncResult(
                success=True,
                run=run,
                queued=queued,
                lock_acquired=lock_result.acquired,
                report_subject=report.subject,
            )

    # =========================================================================
    # Phases
    # =========================================================================

    def classify(self, now: datetime) -> ClassificationRun:
        """Classify every source data row."""
        sheets = self.settings.sheets
        key_header = self.settings.headers.key

        existing = [
            *read_key_column(self.destination_a, key_header, sheets.destination_a),
            *read_key_column(self.destination_b, key_header, sheets.destination_b),
        ]
        classifier = RecordClassifier(
            self.source.header(),
            self.settings.headers,
            self.settings.classifier,
            existing_keys=[normalize_key(k) for k in existing],
            now=now,
            sheet_name=sheets.source,
        )

        last_row = self.source.last_row_index()
        last_col = self.source.last_column_index()
        rows = self.source.read_rows(2, last_row, 1, last_col) if last_row >= 2 else []
        logger.info("Classifying %d source rows from '%s'", len(rows), sheets.source)
        return classifier.classify_all(enumerate(rows, start=2))

    def write_destinations(self, run: ClassificationRun, now: datetime) -> None:
        """Append routed rows to their destinations and flush."""
        source_map = HeaderMap(self.source.header())
        targets = (
            (self.destination_a, Decision.ROUTE_A, self.settings.sheets.destination_a),
            (self.destination_b, Decision.ROUTE_B, self.settings.sheets.destination_b),
        )
        for store, decision, name in targets:
            results = run.rows_for(decision)
            if not results:
                continue
            dest_header = store.header()
            rows = [self._align(result, source_map, dest_header, now) for result in results]
            store.append_rows(rows)
            store.flush()
            logger.info("Appended %d rows to '%s'", len(rows), name)

    def _align(
        self,
        result: ClassificationResult,
        source_map: HeaderMap,
        dest_header: Sequence[Any],
        now: datetime,
    ) -> list[Any]:
        """Map a source row onto destination columns by header name."""
        defaults = {
            normalize_key(header): value
            for header, value in self.settings.classifier.destination_defaults.items()
        }
        dest_map = HeaderMap(list(dest_header))
        row = []
        for idx in range(len(dest_header)):
            label = normalize_key(dest_map.label(idx))
            src_idx = source_map.index_of(label) if label else None
            value = None
            if src_idx is not None and src_idx < len(result.values):
                value = result.values[src_idx]
            if is_blank(value) and label in defaults:
                value = expand_default(defaults[label], now)
            row.append(value)
        return row

    def _notify(self, report: Report) -> None:
        if self.notifier is None:
            logger.info("No notifier configured; report: %s", report.subject)
            return
        self.notifier.send(self.settings.notifications.recipients, report.subject, report.html_body)
