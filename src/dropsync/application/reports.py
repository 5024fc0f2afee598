"""
Report rendering - subjects and HTML bodies for notification emails.

Templates live beside this module and are rendered with Jinja2
(autoescaped, since keys and reasons come from user-edited cells).
Every list is capped at notes_cap entries with an overflow count.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Sequence

from jinja2 import Environment, FileSystemLoader, select_autoescape

from dropsync.domain.keys import display_key
from dropsync.domain.models import ClassificationRun, CleanupOutcome, CleanupState

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

STOPPED_MARKER = "STOPPED (max passes reached)"


@dataclass
class Report:
    """A rendered notification."""
    subject: str
    html_body: str


@dataclass
class CappedList:
    """A list trimmed to the notes cap, remembering how much was hidden."""
    items: list
    hidden: int = 0

    @classmethod
    def of(cls, values: Sequence, cap: int) -> CappedList:
        values = list(values)
        return cls(items=values[:cap], hidden=max(0, len(values) - cap))


class ReportRenderer:
    """Builds sync and cleanup reports."""

    def __init__(self, notes_cap: int = 50, template_dir: Path | str = TEMPLATE_DIR) -> None:
        self.notes_cap = notes_cap
        self._env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(["html"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def _cap(self, values: Sequence) -> CappedList:
        return CappedList.of(values, self.notes_cap)

    def _render(self, template_name: str, **context) -> str:
        return self._env.get_template(template_name).render(**context)

    # =========================================================================
    # Sync
    # =========================================================================

    def sync_report(
        self,
        run: ClassificationRun,
        queued: Sequence[str],
        destination_a: str,
        destination_b: str,
        finished_at: datetime,
    ) -> Report:
        subject = (
            f"Dropped transfer: {len(run.routed_a)} to {destination_a}, "
            f"{len(run.routed_b)} to {destination_b}, {len(queued)} queued for cleanup"
        )
        summary = run.exceptions[0][1] if run.exceptions else ""
        html = self._render(
            "sync_report.html",
            summary=summary,
            destination_a=destination_a,
            destination_b=destination_b,
            routed_a=self._cap([display_key(k) for k in run.routed_a]),
            routed_b=self._cap([display_key(k) for k in run.routed_b]),
            duplicates=self._cap([display_key(k) for k in run.duplicates]),
            exceptions=self._cap([(display_key(k), reason) for k, reason in run.exceptions[1:]]),
            queued_count=len(queued),
            finished_at=finished_at,
        )
        return Report(subject=subject, html_body=html)

    def sync_error_report(self, error: str, finished_at: datetime) -> Report:
        return Report(
            subject=f"Dropped transfer FAILED: {error}",
            html_body=self._render(
                "error_report.html",
                title="Dropped transfer failed",
                error=error,
                note="The deletion queue and cleanup state were left untouched.",
                finished_at=finished_at,
            ),
        )

    # =========================================================================
    # Cleanup
    # =========================================================================

    def cleanup_subject(self, outcome: CleanupOutcome, state: CleanupState, error: str | None = None) -> str:
        deleted = len(state.deleted)
        if outcome is CleanupOutcome.COMPLETED:
            return f"Source cleanup COMPLETE: {deleted} deleted, {len(state.not_found)} not found"
        if outcome is CleanupOutcome.EXHAUSTED:
            return (
                f"Source cleanup {STOPPED_MARKER}: {deleted} deleted, "
                f"{len(state.remaining)} remaining"
            )
        return f"Source cleanup FAILED after {state.passes} passes: {error or 'unknown error'}"

    def cleanup_report(
        self,
        outcome: CleanupOutcome,
        state: CleanupState,
        finished_at: datetime,
        error: str | None = None,
    ) -> Report:
        """One consolidated report for a finished or exhausted cycle."""
        html = self._render(
            "cleanup_report.html",
            outcome=outcome.value.replace("_", " ").upper(),
            state=state,
            original_count=len(state.original_queue),
            deleted=self._cap([display_key(k) for k in state.deleted]),
            not_found=self._cap([display_key(k) for k in state.not_found]),
            skip_notes=self._cap(state.skipped_recent_edits),
            pass_summaries=state.pass_summaries,
            error=error,
            finished_at=finished_at,
        )
        return Report(subject=self.cleanup_subject(outcome, state, error), html_body=html)
