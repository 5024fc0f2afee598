"""
Tests for the openpyxl-backed tabular store.
"""

import pytest
from openpyxl import load_workbook

from dropsync.domain.errors import ConfigurationError, StoreError
from dropsync.infrastructure.excel_store import ExcelWorkbook

from conftest import build_workbook


@pytest.fixture
def book():
    return build_workbook({
        "Source": [
            ["ID", "Name", "Status"],
            ["K1", "Ann", "Dropped"],
            ["K2", "Bob", "Active"],
            ["K3", "Cat", "Dropped"],
            ["K4", "Dan", "Dropped"],
        ],
        "Empty": [],
    })


class TestExcelSheetStore:

    def test_dimensions(self, book):
        source = book.sheet("Source")
        assert source.last_row_index() == 5
        assert source.last_column_index() == 3
        assert source.header() == ["ID", "Name", "Status"]

    def test_empty_sheet(self, book):
        empty = book.sheet("Empty")
        assert empty.last_row_index() == 0
        assert empty.header() == []

    def test_trailing_blank_rows_ignored(self, book):
        ws = book.worksheet("Source")
        ws.cell(row=9, column=1, value="   ")
        assert book.sheet("Source").last_row_index() == 5

    def test_read_rows_range(self, book):
        source = book.sheet("Source")
        assert source.read_rows(2, 3) == [["K1", "Ann", "Dropped"], ["K2", "Bob", "Active"]]
        assert source.read_rows(4, 5, 1, 1) == [["K3"], ["K4"]]
        assert source.read_rows(5, 4) == []

    def test_delete_row_block(self, book):
        source = book.sheet("Source")
        source.delete_row_block(3, 2)
        assert [r[0] for r in source.read_rows(2, source.last_row_index(), 1, 1)] == ["K1", "K4"]
        assert book.dirty

    def test_header_is_protected(self, book):
        with pytest.raises(StoreError):
            book.sheet("Source").delete_row_block(1, 1)

    def test_append_rows(self, book):
        source = book.sheet("Source")
        source.append_rows([["K5", "Eve", "Dropped"]])
        assert source.last_row_index() == 6
        assert source.read_rows(6, 6) == [["K5", "Eve", "Dropped"]]

    def test_append_to_header_only_sheet(self):
        book = build_workbook({"Dest": [["ID", "Name"]]})
        dest = book.sheet("Dest")
        dest.append_rows([["K1", "Ann"], ["K2", "Bob"]])
        assert dest.read_rows(2, 3) == [["K1", "Ann"], ["K2", "Bob"]]

    def test_missing_sheet(self, book):
        with pytest.raises(ConfigurationError, match="Nope"):
            book.sheet("Nope").header()


class TestExcelWorkbook:

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ExcelWorkbook(tmp_path / "missing.xlsx").wb

    def test_flush_saves_to_disk(self, tmp_path):
        path = tmp_path / "records.xlsx"
        build_workbook({"Source": [["ID"], ["K1"], ["K2"]]}).wb.save(path)

        book = ExcelWorkbook(path)
        source = book.sheet("Source")
        source.delete_row_block(2, 1)
        source.flush()
        book.close()

        ws = load_workbook(path)["Source"]
        assert [c.value for c in ws["A"]] == ["ID", "K2"]

    def test_save_without_changes_is_noop(self, tmp_path):
        path = tmp_path / "records.xlsx"
        build_workbook({"Source": [["ID"]]}).wb.save(path)
        before = path.stat().st_mtime_ns

        book = ExcelWorkbook(path)
        book.sheet("Source").flush()

        assert path.stat().st_mtime_ns == before
