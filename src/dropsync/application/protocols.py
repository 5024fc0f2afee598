"""
Collaborator protocols (interfaces).

The core consumes these capabilities; concrete implementations live
in the infrastructure layer and tests substitute in-memory ones.
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence


class TabularStore(Protocol):
    """
    One sheet of a spreadsheet-like store.

    Row indices are 1-based and row 1 is the header.
    """

    def read_rows(
        self,
        start_row: int,
        end_row: int,
        start_col: int = 1,
        end_col: int | None = None,
    ) -> list[list[Any]]:
        """Read an inclusive rectangular range as lists of cell values."""
        ...

    def append_rows(self, rows: Sequence[Sequence[Any]]) -> None:
        """Append rows after the last used row."""
        ...

    def delete_row_block(self, start_index: int, count: int) -> None:
        """Delete count contiguous rows starting at start_index."""
        ...

    def last_row_index(self) -> int:
        ...

    def last_column_index(self) -> int:
        ...

    def header(self) -> list[Any]:
        """Header row values."""
        ...

    def flush(self) -> None:
        """Persist pending mutations."""
        ...


class KeyValueStore(Protocol):
    """Persistent string key-value store."""

    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class NotificationSender(Protocol):
    """Fire-and-forget report delivery."""

    def send(self, recipients: Sequence[str], subject: str, html_body: str) -> bool:
        """Send a report; failures are logged by the sender, never raised."""
        ...


class MutualExclusion(Protocol):
    """Cooperative lock."""

    def try_acquire(self, timeout_ms: int) -> bool:
        ...

    def release(self) -> None:
        ...
