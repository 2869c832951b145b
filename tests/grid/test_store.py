"""Tests for the workbook-backed GridStore."""

from pathlib import Path

import pytest
from openpyxl import Workbook, load_workbook

from sheetchat.errors import MalformedReference, SheetNotFound, WorkbookWriteError
from sheetchat.grid.store import GridStore, TableData, table_to_markdown


class TestEnsureWorkbook:
    def test_creates_sample_workbook(self, workbook_path: Path):
        store = GridStore(workbook_path)
        store.ensure_workbook()
        assert workbook_path.exists()
        assert store.get_sheet_names() == ["Sheet1"]

    def test_keeps_existing_workbook(self, tmp_path: Path):
        path = tmp_path / "existing.xlsx"
        wb = Workbook()
        wb.active.title = "Budget"
        wb.active["A1"] = "Kept"
        wb.save(path)

        store = GridStore(path)
        store.ensure_workbook()
        assert store.get_sheet_names() == ["Budget"]
        assert store.read_cell("Budget", "A1").value == "Kept"


class TestReadRange:
    def test_sample_range(self, grid: GridStore):
        table = grid.read_range("Sheet1", "A1", "D6")
        assert table.headers == ["Name", "Email", "Amount", "Bonus"]
        assert len(table.rows) == 5
        assert table.rows[0][0] == "Alice Smith"
        assert table.rows[0][2] == 1500
        assert table.range == "Sheet1!A1:D6"

    def test_formula_cells_are_evaluated(self, grid: GridStore):
        table = grid.read_range("Sheet1", "C2", "D3")
        assert table.headers == ["1500", "150"]
        assert table.rows == [[2200, 220.0]]

    def test_reversed_corners_are_normalized(self, grid: GridStore):
        table = grid.read_range("Sheet1", "D6", "A1")
        assert table.range == "Sheet1!A1:D6"
        assert table.headers[0] == "Name"

    def test_empty_cells_are_none_and_blank_headers(self, grid: GridStore):
        table = grid.read_range("Sheet1", "E1", "F2")
        assert table.headers == ["", ""]
        assert table.rows == [[None, None]]

    def test_unknown_sheet(self, grid: GridStore):
        with pytest.raises(SheetNotFound, match='Sheet "Nope" not found'):
            grid.read_range("Nope", "A1", "B2")

    def test_malformed_corner(self, grid: GridStore):
        with pytest.raises(MalformedReference):
            grid.read_range("Sheet1", "A1", "B")


class TestReadCell:
    def test_plain_value(self, grid: GridStore):
        cell = grid.read_cell("Sheet1", "A2")
        assert cell.address == "Sheet1!A2"
        assert cell.value == "Alice Smith"
        assert cell.formula is None
        assert "formula" not in cell.to_dict()

    def test_formula_cell_has_formula_and_number(self, grid: GridStore):
        cell = grid.read_cell("Sheet1", "D2")
        assert cell.formula == "C2*0.1"
        assert cell.value == 150.0
        assert cell.to_dict() == {"address": "Sheet1!D2", "value": 150.0, "formula": "C2*0.1"}

    def test_nested_formula(self, grid: GridStore):
        cell = grid.read_cell("Sheet1", "D7")
        assert cell.formula == "SUM(D2:D6)"
        assert cell.value == 1100.0

    def test_unpopulated_cell(self, grid: GridStore):
        assert grid.read_cell("Sheet1", "Z99").value is None

    def test_lowercase_address_is_normalized(self, grid: GridStore):
        assert grid.read_cell("Sheet1", "c2").address == "Sheet1!C2"

    def test_unknown_sheet(self, grid: GridStore):
        with pytest.raises(SheetNotFound):
            grid.read_cell("Missing", "A1")

    def test_unevaluable_formula_reads_as_none(self, tmp_path: Path):
        path = tmp_path / "odd.xlsx"
        wb = Workbook()
        wb.active.title = "S"
        wb.active["A1"] = "=VLOOKUP(1,B1:C2,2)"
        wb.active["A2"] = "=A2+1"
        wb.save(path)

        store = GridStore(path)
        assert store.read_cell("S", "A1").value is None
        assert store.read_cell("S", "A1").formula == "VLOOKUP(1,B1:C2,2)"
        assert store.read_cell("S", "A2").value is None


class TestWriteCell:
    def test_write_then_read(self, grid: GridStore):
        grid.write_cell("Sheet1", "A1", "Renamed")
        assert grid.read_cell("Sheet1", "A1").value == "Renamed"

    def test_write_replaces_formula(self, grid: GridStore):
        grid.write_cell("Sheet1", "D2", 99)
        cell = grid.read_cell("Sheet1", "D2")
        assert cell.formula is None
        assert cell.value == 99

    def test_dependent_formula_sees_new_value(self, grid: GridStore):
        grid.write_cell("Sheet1", "C2", 2000)
        assert grid.read_cell("Sheet1", "D2").value == 200.0

    def test_numbers_stay_numeric(self, grid: GridStore):
        grid.write_cell("Sheet1", "C3", 12.5)
        wb = load_workbook(grid.path)
        assert wb["Sheet1"]["C3"].value == 12.5
        assert wb["Sheet1"]["C3"].data_type == "n"

    def test_failed_save_keeps_previous_file(self, grid: GridStore, monkeypatch):
        before = grid.path.read_bytes()

        def refuse(src, dst):
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr("sheetchat.grid.store.os.replace", refuse)

        with pytest.raises(WorkbookWriteError) as excinfo:
            grid.write_cell("Sheet1", "A1", "Renamed")

        assert excinfo.value.code == "E-4002"
        assert "Permission denied" in str(excinfo.value)
        assert grid.path.read_bytes() == before
        assert list(grid.path.parent.glob(".example-*")) == []

    def test_equals_prefixed_text_is_not_a_formula(self, grid: GridStore):
        grid.write_cell("Sheet1", "A1", "=1+1")
        cell = grid.read_cell("Sheet1", "A1")
        assert cell.value == "=1+1"
        assert cell.formula is None

    def test_write_outside_used_area_widens_sheet(self, grid: GridStore):
        grid.write_cell("Sheet1", "F10", "far")
        table = grid.get_sheet_data("Sheet1")
        assert table.range == "Sheet1!A1:F10"
        assert table.rows[-1][-1] == "far"

    def test_returns_cell_data(self, grid: GridStore):
        cell = grid.write_cell("Sheet1", "b2", "new@example.com")
        assert cell.address == "Sheet1!B2"
        assert cell.value == "new@example.com"

    def test_leaves_no_temporary_files(self, grid: GridStore):
        grid.write_cell("Sheet1", "A1", "x")
        assert sorted(p.name for p in grid.path.parent.iterdir()) == ["example.xlsx"]

    def test_unknown_sheet_does_not_write(self, grid: GridStore):
        before = grid.path.read_bytes()
        with pytest.raises(SheetNotFound):
            grid.write_cell("Nope", "A1", "x")
        assert grid.path.read_bytes() == before


class TestSheetData:
    def test_whole_sample_sheet(self, grid: GridStore):
        table = grid.get_sheet_data("Sheet1")
        assert table.range == "Sheet1!A1:D7"
        assert table.rows[-1] == ["Total", None, 11000, 1100.0]

    def test_empty_sheet(self, tmp_path: Path):
        path = tmp_path / "blank.xlsx"
        wb = Workbook()
        wb.active.title = "Blank"
        wb.save(path)
        table = GridStore(path).get_sheet_data("Blank")
        assert table.headers == []
        assert table.rows == []


def test_table_to_markdown():
    table = TableData(headers=["Name", "Amount"], rows=[["Alice", 1500], ["Bob", None]])
    assert table_to_markdown(table) == (
        "| Name | Amount |\n"
        "| --- | --- |\n"
        "| Alice | 1500 |\n"
        "| Bob |  |"
    )
