"""
Domain models for dropsync.

This module contains the core types that flow between components:
- Classification decisions and per-run classification output
- The persisted cleanup cycle state and its pass history
- Cleanup outcomes and per-invocation results
- The explicit best-effort lock result

These models are pure data structures with no I/O dependencies.
Persisted types round-trip through plain dicts so the infrastructure
layer can store them as JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, assuming UTC when no offset is stored."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ============================================================================
# Enumerations
# ============================================================================

class Decision(str, Enum):
    """Routing decision for one classified source row."""

    REJECT = "reject"
    ROUTE_A = "route_a"
    ROUTE_B = "route_b"
    DUPLICATE_SKIP = "duplicate_skip"

    @property
    def is_queued(self) -> bool:
        """Check if rows with this decision enter the deletion queue."""
        return self is not Decision.REJECT


class CleanupOutcome(str, Enum):
    """
    Outcome of one cleanup invocation.

    COMPLETED, EXHAUSTED and FAILED_TERMINAL end the cycle: queue and
    state are cleared and exactly one report is sent. PARTIAL_PASS and
    FAILED_RETRY are silent and leave state for the next invocation.
    """

    NO_QUEUE = "no_queue"
    SEEDED = "seeded"
    RUNNING = "running"
    PARTIAL_PASS = "partial_pass"
    COMPLETED = "completed"
    EXHAUSTED = "exhausted"
    FAILED_RETRY = "failed_retry"
    FAILED_TERMINAL = "failed_terminal"

    @property
    def is_terminal(self) -> bool:
        """Check if this outcome ends the cleanup cycle."""
        return self in (
            CleanupOutcome.COMPLETED,
            CleanupOutcome.EXHAUSTED,
            CleanupOutcome.FAILED_TERMINAL,
        )


# ============================================================================
# Classification
# ============================================================================

@dataclass
class ClassificationResult:
    """
    Classification of a single source row. Not persisted.

    Attributes:
        key: Normalized record key
        decision: Routing decision
        reasons: Rejection reasons (empty unless REJECT)
        row_number: 1-based source row number
        values: Raw source row values
    """
    key: str
    decision: Decision
    reasons: list[str] = field(default_factory=list)
    row_number: int = 0
    values: list[Any] = field(default_factory=list)


@dataclass
class ClassificationRun:
    """Aggregate output of classifying every source row once."""

    results: list[ClassificationResult] = field(default_factory=list)
    routed_a: list[str] = field(default_factory=list)
    routed_b: list[str] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)
    deletion_queue: list[str] = field(default_factory=list)
    exceptions: list[tuple[str, str]] = field(default_factory=list)
    scanned: int = 0

    @property
    def rejected_count(self) -> int:
        return sum(1 for r in self.results if r.decision is Decision.REJECT)

    def rows_for(self, decision: Decision) -> list[ClassificationResult]:
        """Get the classified rows carrying a given decision, in scan order."""
        return [r for r in self.results if r.decision is decision]


# ============================================================================
# Cleanup State
# ============================================================================

@dataclass
class SkipNote:
    """A removal skipped because the key was recently edited."""
    key: str
    note: str

    def to_dict(self) -> dict[str, str]:
        return {"key": self.key, "note": self.note}


@dataclass
class PassSummary:
    """History entry appended at the end of every cleanup pass."""
    pass_number: int
    scanned_chunks: int
    deleted_this_run: int
    skipped_this_run: int
    remaining_after: int
    ended_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "pass_number": self.pass_number,
            "scanned_chunks": self.scanned_chunks,
            "deleted_this_run": self.deleted_this_run,
            "skipped_this_run": self.skipped_this_run,
            "remaining_after": self.remaining_after,
            "ended_at": self.ended_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PassSummary:
        return cls(
            pass_number=int(data["pass_number"]),
            scanned_chunks=int(data["scanned_chunks"]),
            deleted_this_run=int(data["deleted_this_run"]),
            skipped_this_run=int(data["skipped_this_run"]),
            remaining_after=int(data["remaining_after"]),
            ended_at=parse_timestamp(data["ended_at"]),
        )


@dataclass
class CleanupState:
    """
    Persisted state of one cleanup cycle (single instance process-wide).

    Invariants:
        - remaining and deleted are disjoint
        - remaining | deleted is a subset of original_queue

    Keys never found in the source simply stay in remaining; they are
    reported as "not found" when the cycle ends.
    """
    original_queue: list[str]
    remaining: set[str]
    deleted: list[str] = field(default_factory=list)
    skipped_recent_edits: list[SkipNote] = field(default_factory=list)
    pass_summaries: list[PassSummary] = field(default_factory=list)
    passes: int = 0
    started_at: datetime = field(default_factory=utcnow)

    @classmethod
    def seed(cls, queue: list[str], now: datetime) -> CleanupState:
        """Build fresh state from the deletion queue."""
        return cls(
            original_queue=list(queue),
            remaining=set(queue),
            started_at=now,
        )

    def mark_deleted(self, key: str) -> None:
        """Move a key from remaining to deleted."""
        self.remaining.discard(key)
        if key not in self.deleted:
            self.deleted.append(key)

    def add_skip_note(self, key: str, note: str, cap: int) -> None:
        """Record a recent-edit skip; the log never grows past cap."""
        if len(self.skipped_recent_edits) < cap:
            self.skipped_recent_edits.append(SkipNote(key=key, note=note))

    @property
    def not_found(self) -> list[str]:
        """Original keys that were never deleted, in queue order."""
        deleted = set(self.deleted)
        return [k for k in self.original_queue if k not in deleted]

    def check_invariants(self) -> bool:
        """Verify the disjoint/subset invariants."""
        deleted = set(self.deleted)
        if self.remaining & deleted:
            return False
        return (self.remaining | deleted) <= set(self.original_queue)

    def to_dict(self) -> dict[str, Any]:
        return {
            "original_queue": list(self.original_queue),
            # Serialized in queue order so the stored JSON is stable
            "remaining": [k for k in self.original_queue if k in self.remaining],
            "deleted": list(self.deleted),
            "skipped_recent_edits": [n.to_dict() for n in self.skipped_recent_edits],
            "pass_summaries": [s.to_dict() for s in self.pass_summaries],
            "passes": self.passes,
            "started_at": self.started_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CleanupState:
        return cls(
            original_queue=list(data.get("original_queue", [])),
            remaining=set(data.get("remaining", [])),
            deleted=list(data.get("deleted", [])),
            skipped_recent_edits=[
                SkipNote(key=n["key"], note=n["note"])
                for n in data.get("skipped_recent_edits", [])
            ],
            pass_summaries=[
                PassSummary.from_dict(s) for s in data.get("pass_summaries", [])
            ],
            passes=int(data.get("passes", 0)),
            started_at=parse_timestamp(data["started_at"]) if data.get("started_at") else utcnow(),
        )


@dataclass
class CleanupPassResult:
    """Result of one cleanup invocation, returned to the orchestrator."""
    outcome: CleanupOutcome
    pass_number: int = 0
    deleted_this_run: int = 0
    skipped_this_run: int = 0
    remaining: int = 0
    deleted_total: list[str] = field(default_factory=list)
    not_found: list[str] = field(default_factory=list)
    report_subject: str | None = None
    error: str | None = None

    @property
    def report_sent(self) -> bool:
        return self.report_subject is not None


# ============================================================================
# Orchestration
# ============================================================================

@dataclass(frozen=True)
class LockResult:
    """
    Outcome of a best-effort lock attempt.

    Callers decide how to proceed under contention; the jobs in this
    package proceed with a warning when acquired is False.
    """
    acquired: bool
    waited_seconds: float = 0.0


@dataclass
class SyncResult:
    """Outcome of one sync invocation."""
    success: bool
    run: ClassificationRun | None = None
    queued: list[str] = field(default_factory=list)
    lock_acquired: bool = False
    report_subject: str | None = None
    error: str | None = None
