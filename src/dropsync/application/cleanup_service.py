"""
Cleanup Service - Thin Orchestrator for one scheduled cleanup pass.

Takes the best-effort lock, runs the state machine once and releases.
All pass/cycle logic lives in cleanup_machine.
"""

from __future__ import annotations

import logging

from dropsync.application.cleanup_machine import CleanupStateMachine
from dropsync.application.locking import best_effort_lock
from dropsync.application.protocols import MutualExclusion
from dropsync.domain.models import CleanupPassResult

logger = logging.getLogger(__name__)


class CleanupService:
    """Orchestrator for the cleanup job."""

    def __init__(
        self,
        machine: CleanupStateMachine,
        lock: MutualExclusion | None = None,
        lock_wait_seconds: float = 30,
    ) -> None:
        self.machine = machine
        self.lock = lock
        self.lock_wait_seconds = lock_wait_seconds

    def run(self) -> CleanupPassResult:
        with best_effort_lock(self.lock, self.lock_wait_seconds, "cleanup"):
            result = self.machine.run_pass()
        logger.info("Cleanup invocation finished: %s", result.outcome.value)
        return result
