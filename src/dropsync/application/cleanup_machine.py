"""
Cleanup State Machine - resumable, time-boxed source row removal.

Drains the deletion queue across independent invocations ("passes").
Each pass scans the source bottom-up in fixed-size chunks, deletes
eligible rows in maximal contiguous blocks and checkpoints state after
every chunk, so a timeout or crash loses at most the chunk in flight.

States:
    NO_QUEUE      nothing queued, no state created
    SEEDED        state freshly built from the queue
    RUNNING       scanning chunks
    PARTIAL_PASS  budget spent, work remains; silent, state persisted
    COMPLETED     remaining empty                   (terminal, reported)
    EXHAUSTED     work remains but max passes used  (terminal, reported)

Terminal outcomes send exactly one consolidated report and clear both
the queue and the state. Partial passes never report, so a cycle sends
one email however many passes it took.

Failure handling:
    An exception aborts the pass; state stays at the last checkpoint and
    the next scheduled invocation retries. If the pass counter already
    reached max passes, the cycle is forced terminal (FAILED_TERMINAL)
    with the error in the report, so a poisoned cycle cannot loop forever.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Sequence

from dropsync.application.cleanup_state import CleanupStateRepository
from dropsync.application.deletion_queue import DeletionQueue
from dropsync.application.protocols import NotificationSender, TabularStore
from dropsync.application.recent_edits import RecentEditTracker
from dropsync.application.reports import ReportRenderer
from dropsync.domain.classifier import HeaderMap
from dropsync.domain.keys import normalize_key
from dropsync.domain.models import (
    CleanupOutcome,
    CleanupPassResult,
    CleanupState,
    PassSummary,
    utcnow,
)
from dropsync.domain.settings import CleanupSettings

logger = logging.getLogger(__name__)

FIRST_DATA_ROW = 2


def collapse_blocks(row_numbers: Sequence[int]) -> list[tuple[int, int]]:
    """
    Collapse row numbers into maximal contiguous blocks, highest first.

    Deleting the highest block first keeps every lower row number
    valid for the blocks still to delete.

    Example:
        [9, 8, 7, 5, 2, 3] -> [(7, 3), (5, 1), (2, 2)]

    Returns:
        List of (start_row, count) in descending start order
    """
    blocks: list[tuple[int, int]] = []
    for row in sorted(set(row_numbers), reverse=True):
        if blocks and blocks[-1][0] - 1 == row:
            _, count = blocks[-1]
            blocks[-1] = (row, count + 1)
        else:
            blocks.append((row, 1))
    return blocks


@dataclass
class ScanStats:
    """Counters for one pass."""
    chunks: int = 0
    deleted: int = 0
    skipped: int = 0
    stopped_by_budget: bool = False


class CleanupStateMachine:
    """
    Multi-pass cleanup controller.

    Usage:
        machine = CleanupStateMachine(source, queue, states, tracker,
                                      settings.cleanup, key_header="ID",
                                      notifier=sender, recipients=[...])
        result = machine.run_pass()
    """

    def __init__(
        self,
        source: TabularStore,
        queue: DeletionQueue,
        states: CleanupStateRepository,
        tracker: RecentEditTracker,
        settings: CleanupSettings,
        key_header: str,
        notifier: NotificationSender | None = None,
        recipients: Sequence[str] = (),
        renderer: ReportRenderer | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.source = source
        self.queue = queue
        self.states = states
        self.tracker = tracker
        self.settings = settings
        self.key_header = key_header
        self.notifier = notifier
        self.recipients = list(recipients)
        self.renderer = renderer or ReportRenderer(notes_cap=settings.notes_cap)
        self.clock = clock
        self.status = CleanupOutcome.NO_QUEUE

    # =========================================================================
    # Public API
    # =========================================================================

    def run_pass(self) -> CleanupPassResult:
        """
        Run one cleanup invocation.

        Returns:
            CleanupPassResult describing the outcome of this pass
        """
        started = self.clock()
        try:
            self.tracker.prune(started, self.settings.recent_edit_ttl)

            state = self.states.load()
            if state is None:
                queue = self.queue.read()
                if not queue:
                    logger.info("Deletion queue is empty - nothing to clean up")
                    self.status = CleanupOutcome.NO_QUEUE
                    return CleanupPassResult(outcome=CleanupOutcome.NO_QUEUE)
                state = CleanupState.seed(queue, started)
                self.status = CleanupOutcome.SEEDED
                logger.info("Seeded cleanup cycle with %d keys", len(queue))

            state.passes += 1
            self.states.save(state)
            self.status = CleanupOutcome.RUNNING
            logger.info(
                "Cleanup pass %d/%d: %d keys remaining",
                state.passes,
                self.settings.max_passes,
                len(state.remaining),
            )

            stats = self._scan(state, started)

            state.pass_summaries.append(
                PassSummary(
                    pass_number=state.passes,
                    scanned_chunks=stats.chunks,
                    deleted_this_run=stats.deleted,
                    skipped_this_run=stats.skipped,
                    remaining_after=len(state.remaining),
                    ended_at=self.clock(),
                )
            )
            self.states.save(state)
        except Exception as e:
            return self._handle_failure(e)

        return self._decide(state, stats)

    # =========================================================================
    # Scanning
    # =========================================================================

    def _key_column(self) -> int:
        """1-based column of the key header."""
        header_map = HeaderMap(self.source.header())
        return header_map.require(self.key_header) + 1

    def _scan(self, state: CleanupState, started: datetime) -> ScanStats:
        """Scan the source from the last row upward in chunks."""
        stats = ScanStats()
        key_col = self._key_column()
        chunk_size = self.settings.chunk_size
        window = self.settings.edit_protection_window
        budget = self.settings.pass_time_budget

        end = self.source.last_row_index()
        while end >= FIRST_DATA_ROW and state.remaining:
            # At least one chunk per pass so a tiny budget still progresses
            if stats.chunks and self.clock() - started >= budget:
                stats.stopped_by_budget = True
                logger.info(
                    "Pass %d time budget reached after %d chunks", state.passes, stats.chunks
                )
                break

            start = max(FIRST_DATA_ROW, end - chunk_size + 1)
            values = self.source.read_rows(start, end, key_col, key_col)
            now = self.clock()
            edits = self.tracker.entries()

            marked: list[int] = []
            for offset in range(len(values) - 1, -1, -1):
                row = values[offset]
                key = normalize_key(row[0] if row else None)
                if not key or key not in state.remaining:
                    continue

                row_number = start + offset
                if self.tracker.is_protected(key, now, window, snapshot=edits):
                    age = (now - edits[key]).total_seconds()
                    state.add_skip_note(
                        key,
                        f"pass {state.passes}, row {row_number}: edited {age:.0f}s ago "
                        f"(protected for {window.total_seconds():.0f}s)",
                        self.settings.notes_cap,
                    )
                    stats.skipped += 1
                    logger.debug("Skipping recently edited key %s", key)
                    continue

                marked.append(row_number)
                state.mark_deleted(key)

            for block_start, count in collapse_blocks(marked):
                self.source.delete_row_block(block_start, count)

            stats.deleted += len(marked)
            stats.chunks += 1
            if marked:
                self.source.flush()
            self.states.save(state)
            end = start - 1

        logger.info(
            "Pass %d scanned %d chunks: %d deleted, %d skipped, %d remaining",
            state.passes,
            stats.chunks,
            stats.deleted,
            stats.skipped,
            len(state.remaining),
        )
        return stats

    # =========================================================================
    # Outcomes
    # =========================================================================

    def _decide(self, state: CleanupState, stats: ScanStats) -> CleanupPassResult:
        if not state.remaining:
            outcome = CleanupOutcome.COMPLETED
        elif state.passes >= self.settings.max_passes:
            outcome = CleanupOutcome.EXHAUSTED
        else:
            outcome = CleanupOutcome.PARTIAL_PASS

        result = CleanupPassResult(
            outcome=outcome,
            pass_number=state.passes,
            deleted_this_run=stats.deleted,
            skipped_this_run=stats.skipped,
            remaining=len(state.remaining),
            deleted_total=list(state.deleted),
        )
        self.status = outcome
        if outcome is CleanupOutcome.PARTIAL_PASS:
            logger.info(
                "Pass %d incomplete: %d keys remain for the next pass",
                state.passes,
                len(state.remaining),
            )
            return result

        return self._finalize(state, outcome, result)

    def _finalize(
        self,
        state: CleanupState,
        outcome: CleanupOutcome,
        result: CleanupPassResult,
        error: str | None = None,
    ) -> CleanupPassResult:
        """Report once, then clear queue and state."""
        report = self.renderer.cleanup_report(outcome, state, self.clock(), error=error)
        if self.notifier is not None:
            self.notifier.send(self.recipients, report.subject, report.html_body)
        else:
            logger.info("No notifier configured; report: %s", report.subject)

        self.queue.clear()
        self.states.clear()
        logger.info("Cleanup cycle ended: %s", report.subject)

        result.not_found = state.not_found
        result.deleted_total = list(state.deleted)
        result.report_subject = report.subject
        result.error = error
        return result

    def _handle_failure(self, exc: Exception) -> CleanupPassResult:
        error = f"{type(exc).__name__}: {exc}"
        logger.exception("Cleanup pass failed: %s", error)
        try:
            state = self.states.load()
        except Exception:
            logger.exception("Could not reload cleanup state after failure")
            state = None

        if state is None:
            self.status = CleanupOutcome.FAILED_RETRY
            return CleanupPassResult(outcome=CleanupOutcome.FAILED_RETRY, error=error)

        result = CleanupPassResult(
            outcome=CleanupOutcome.FAILED_RETRY,
            pass_number=state.passes,
            remaining=len(state.remaining),
            deleted_total=list(state.deleted),
            error=error,
        )
        if state.passes < self.settings.max_passes:
            logger.warning(
                "Pass %d left at last checkpoint; next invocation retries", state.passes
            )
            self.status = CleanupOutcome.FAILED_RETRY
            return result

        logger.error("Max passes reached with a failing pass - forcing cycle end")
        result.outcome = CleanupOutcome.FAILED_TERMINAL
        self.status = CleanupOutcome.FAILED_TERMINAL
        return self._finalize(state, CleanupOutcome.FAILED_TERMINAL, result, error=error)
