"""
Best-effort mutual exclusion for the sync and cleanup jobs.

The host scheduler is assumed (not guaranteed) to serialize
invocations. A lock is attempted with a bounded wait; failing to get
it never blocks the job. The LockResult is handed back so every call
site decides what contention means for it.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Iterator

from dropsync.application.protocols import MutualExclusion
from dropsync.domain.models import LockResult

logger = logging.getLogger(__name__)


def acquire_best_effort(lock: MutualExclusion | None, wait_seconds: float) -> LockResult:
    """
    Try to take the lock within wait_seconds.

    Lock errors are logged and treated as "not acquired".
    """
    if lock is None:
        return LockResult(acquired=False)
    started = time.monotonic()
    try:
        acquired = lock.try_acquire(int(wait_seconds * 1000))
    except Exception as e:
        logger.warning("Lock attempt failed: %s", e)
        acquired = False
    return LockResult(acquired=acquired, waited_seconds=time.monotonic() - started)


@contextmanager
def best_effort_lock(
    lock: MutualExclusion | None,
    wait_seconds: float,
    job_name: str,
) -> Iterator[LockResult]:
    """
    Hold the lock for the duration of a job when it can be acquired.

    Usage:
        with best_effort_lock(lock, 30, "cleanup") as result:
            run_job()
    """
    result = acquire_best_effort(lock, wait_seconds)
    if not result.acquired:
        logger.warning(
            "%s: lock not acquired after %.1fs - proceeding without it",
            job_name,
            result.waited_seconds,
        )
    try:
        yield result
    finally:
        if result.acquired and lock is not None:
            try:
                lock.release()
            except Exception as e:
                logger.warning("%s: lock release failed: %s", job_name, e)
