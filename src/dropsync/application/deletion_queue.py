"""
Deletion Queue - persisted, ordered, deduplicated keys awaiting removal.

Each successful sync run fully replaces the queue (no merge with a stale
queue). The cleanup state machine seeds a cycle from it and clears it
on a terminal outcome.
"""

from __future__ import annotations

import json
import logging
from typing import Iterable

from dropsync.application.protocols import KeyValueStore
from dropsync.domain.errors import StoreError
from dropsync.domain.keys import dedupe_keys

logger = logging.getLogger(__name__)

QUEUE_KEY = "deletion_queue"


class DeletionQueue:
    """Persisted deletion queue backed by a KeyValueStore."""

    def __init__(self, store: KeyValueStore, storage_key: str = QUEUE_KEY) -> None:
        self.store = store
        self.storage_key = storage_key

    def replace(self, keys: Iterable[str]) -> list[str]:
        """
        Overwrite the queue.

        Keys are normalized and deduplicated case-insensitively,
        keeping first-seen order.

        Returns:
            The persisted key list
        """
        unique = dedupe_keys(keys)
        self.store.set(self.storage_key, json.dumps(unique))
        logger.info("Deletion queue replaced: %d keys", len(unique))
        return unique

    def read(self) -> list[str]:
        """Read the queue (empty list when absent)."""
        raw = self.store.get(self.storage_key)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreError(f"Deletion queue is corrupted: {e}") from e
        return dedupe_keys(data)

    def clear(self) -> None:
        self.store.delete(self.storage_key)
        logger.debug("Deletion queue cleared")

    def __len__(self) -> int:
        return len(self.read())
