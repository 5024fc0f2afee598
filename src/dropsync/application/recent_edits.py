"""
Recent-Edit Tracker - conflict signal gating source row removal.

A pruned, persisted map of normalized key -> last external edit time.
The edit observer writes it whenever a key cell changes; the cleanup
state machine only reads it (plus one prune per invocation).

The protection window is short (a row just edited by a person must not
vanish under them); the TTL is housekeeping that bounds map growth.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from typing import Any

from dropsync.application.protocols import KeyValueStore
from dropsync.domain.errors import StoreError
from dropsync.domain.keys import normalize_key
from dropsync.domain.models import parse_timestamp, utcnow

logger = logging.getLogger(__name__)

RECENT_EDITS_KEY = "recent_edits"


class RecentEditTracker:
    """Persisted key -> last-edit timestamp map."""

    def __init__(self, store: KeyValueStore, storage_key: str = RECENT_EDITS_KEY) -> None:
        self.store = store
        self.storage_key = storage_key

    def _load(self) -> dict[str, datetime]:
        raw = self.store.get(self.storage_key)
        if not raw:
            return {}
        try:
            data = json.loads(raw)
            return {k: parse_timestamp(v) for k, v in data.items()}
        except (json.JSONDecodeError, AttributeError, TypeError, ValueError) as e:
            raise StoreError(f"Recent-edit map is corrupted: {e}") from e

    def _save(self, entries: dict[str, datetime]) -> None:
        self.store.set(
            self.storage_key,
            json.dumps({k: v.isoformat() for k, v in entries.items()}),
        )

    def record(self, key: Any, now: datetime | None = None) -> bool:
        """
        Upsert the last-edit time of a key.

        Returns:
            False when the key is blank (nothing recorded)
        """
        normalized = normalize_key(key)
        if not normalized:
            return False
        entries = self._load()
        entries[normalized] = now or utcnow()
        self._save(entries)
        logger.debug("Recorded edit for %s", normalized)
        return True

    def prune(self, now: datetime, ttl: timedelta) -> int:
        """
        Remove entries older than ttl.

        Returns:
            Number of entries removed
        """
        entries = self._load()
        kept = {k: ts for k, ts in entries.items() if now - ts < ttl}
        removed = len(entries) - len(kept)
        if removed:
            self._save(kept)
            logger.info("Pruned %d recent-edit entries", removed)
        return removed

    def last_edit(self, key: Any) -> datetime | None:
        return self._load().get(normalize_key(key))

    def is_protected(
        self,
        key: Any,
        now: datetime,
        window: timedelta,
        snapshot: dict[str, datetime] | None = None,
    ) -> bool:
        """
        True iff the key was edited less than window ago.

        Args:
            snapshot: Optional map from entries(), to avoid re-reading the
                store for every key of a chunk
        """
        entries = snapshot if snapshot is not None else self._load()
        edited = entries.get(normalize_key(key))
        return edited is not None and now - edited < window

    def entries(self) -> dict[str, datetime]:
        return self._load()


class EditObserver:
    """
    Upstream hook invoked by the host on every source cell edit.

    Only edits to the key column are recorded. Both the new and the old
    key are stamped so a renamed row stays protected under either
    spelling.
    """

    def __init__(self, tracker: RecentEditTracker, key_header: str) -> None:
        self.tracker = tracker
        self._key_header = normalize_key(key_header)

    def on_edit(
        self,
        column_header: Any,
        old_value: Any = None,
        new_value: Any = None,
        now: datetime | None = None,
    ) -> list[str]:
        """
        Handle one cell edit.

        Returns:
            Normalized keys that were recorded
        """
        if normalize_key(column_header) != self._key_header:
            return []
        now = now or utcnow()
        recorded = []
        for value in (new_value, old_value):
            key = normalize_key(value)
            if key and key not in recorded and self.tracker.record(key, now):
                recorded.append(key)
        return recorded
