"""
Cleanup state persistence.

Stores the single in-flight CleanupState as JSON. There is no
optimistic concurrency check: two unlocked writers can race, which
the best-effort locking policy accepts.
"""

from __future__ import annotations

import json
import logging

from dropsync.application.protocols import KeyValueStore
from dropsync.domain.errors import StoreError
from dropsync.domain.models import CleanupState

logger = logging.getLogger(__name__)

STATE_KEY = "cleanup_state"


class CleanupStateRepository:
    """Load/save/clear the cleanup cycle state."""

    def __init__(self, store: KeyValueStore, storage_key: str = STATE_KEY) -> None:
        self.store = store
        self.storage_key = storage_key

    def load(self) -> CleanupState | None:
        raw = self.store.get(self.storage_key)
        if not raw:
            return None
        try:
            return CleanupState.from_dict(json.loads(raw))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Cleanup state is corrupted: {e}") from e

    def save(self, state: CleanupState) -> None:
        self.store.set(self.storage_key, json.dumps(state.to_dict()))
        logger.debug(
            "Checkpoint: pass %d, %d deleted, %d remaining",
            state.passes,
            len(state.deleted),
            len(state.remaining),
        )

    def clear(self) -> None:
        self.store.delete(self.storage_key)
        logger.debug("Cleanup state cleared")
