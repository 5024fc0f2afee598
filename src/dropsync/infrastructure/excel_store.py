"""
Excel tabular store - openpyxl implementation of TabularStore.

One ExcelWorkbook owns the loaded workbook; each tab is exposed as an
ExcelSheetStore. Tabs are resolved lazily so a missing tab surfaces as
a ConfigurationError inside the job that needs it (and gets reported),
not while wiring.

Row indices are 1-based and row 1 is the header. Mutations mark the
workbook dirty; flush() saves it once however many sheets changed.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Sequence

from openpyxl import Workbook, load_workbook

from dropsync.domain.errors import ConfigurationError, StoreError

if TYPE_CHECKING:
    from openpyxl.worksheet.worksheet import Worksheet

logger = logging.getLogger(__name__)


class ExcelWorkbook:
    """
    Lazily loaded workbook shared by several sheet stores.

    Usage:
        book = ExcelWorkbook("data/records.xlsx")
        source = book.sheet("Source")
        source.delete_row_block(5, 2)
        book.save()
    """

    def __init__(self, path: Path | str | None = None, workbook: Workbook | None = None) -> None:
        """
        Initialize workbook wrapper.

        Args:
            path: Workbook file (loaded on first access, saved by save())
            workbook: Already loaded workbook (tests); with no path,
                save() only clears the dirty flag
        """
        self.path = Path(path) if path else None
        self._wb = workbook
        self._dirty = False

    @property
    def wb(self) -> Workbook:
        if self._wb is None:
            if self.path is None or not self.path.exists():
                raise ConfigurationError(f"Workbook not found: {self.path}")
            try:
                self._wb = load_workbook(self.path)
            except Exception as e:
                raise StoreError(f"Failed to open workbook {self.path}: {e}") from e
            logger.info("Workbook loaded: %s", self.path)
        return self._wb

    def worksheet(self, name: str) -> "Worksheet":
        if name not in self.wb.sheetnames:
            raise ConfigurationError(f"Sheet '{name}' not found in workbook {self.path or ''}".rstrip())
        return self.wb[name]

    def sheet(self, name: str) -> ExcelSheetStore:
        return ExcelSheetStore(self, name)

    def mark_dirty(self) -> None:
        self._dirty = True

    @property
    def dirty(self) -> bool:
        return self._dirty

    def save(self) -> None:
        """Save pending changes (no-op when nothing changed)."""
        if not self._dirty:
            return
        if self.path is not None:
            try:
                self.wb.save(self.path)
            except Exception as e:
                raise StoreError(f"Failed to save workbook {self.path}: {e}") from e
            logger.debug("Workbook saved: %s", self.path)
        self._dirty = False

    def close(self) -> None:
        if self._wb is not None:
            self._wb.close()
            self._wb = None


class ExcelSheetStore:
    """TabularStore over one worksheet."""

    def __init__(self, workbook: ExcelWorkbook, name: str) -> None:
        self.workbook = workbook
        self.name = name

    @property
    def ws(self) -> "Worksheet":
        return self.workbook.worksheet(self.name)

    def _row_is_empty(self, row: int) -> bool:
        return all(
            cell.value is None or str(cell.value).strip() == ""
            for cell in self.ws[row]
        )

    def last_row_index(self) -> int:
        """Last row holding any value (0 for an empty sheet)."""
        ws = self.ws
        row = ws.max_row
        # max_row counts trailing rows that only carry formatting
        while row >= 1 and self._row_is_empty(row):
            row -= 1
        return row

    def last_column_index(self) -> int:
        ws = self.ws
        col = ws.max_column
        while col > 1 and ws.cell(row=1, column=col).value is None:
            col -= 1
        return col

    def header(self) -> list[Any]:
        last_col = self.last_column_index()
        if self.last_row_index() < 1:
            return []
        return [self.ws.cell(row=1, column=c).value for c in range(1, last_col + 1)]

    def read_rows(
        self,
        start_row: int,
        end_row: int,
        start_col: int = 1,
        end_col: int | None = None,
    ) -> list[list[Any]]:
        if end_row < start_row:
            return []
        end_col = end_col or self.last_column_index()
        return [
            list(row)
            for row in self.ws.iter_rows(
                min_row=start_row,
                max_row=end_row,
                min_col=start_col,
                max_col=end_col,
                values_only=True,
            )
        ]

    def append_rows(self, rows: Sequence[Sequence[Any]]) -> None:
        if not rows:
            return
        ws = self.ws
        next_row = max(self.last_row_index(), 1) + 1
        for offset, values in enumerate(rows):
            for col, value in enumerate(values, start=1):
                ws.cell(row=next_row + offset, column=col, value=value)
        self.workbook.mark_dirty()
        logger.debug("Appended %d rows to '%s' at row %d", len(rows), self.name, next_row)

    def delete_row_block(self, start_index: int, count: int) -> None:
        if start_index < 2:
            raise StoreError(f"Refusing to delete header row of '{self.name}'")
        if count < 1:
            return
        self.ws.delete_rows(start_index, count)
        self.workbook.mark_dirty()
        logger.debug("Deleted rows %d-%d from '%s'", start_index, start_index + count - 1, self.name)

    def flush(self) -> None:
        self.workbook.save()
