"""Workbook-backed grid store.

GridStore owns a single .xlsx file and is the only component that reads
or writes it. Every operation runs under the store's lock and reopens the
file, so callers always see the last completed write. Writes go to a
temporary file in the same directory and are moved into place with
os.replace, leaving the previous workbook intact if saving fails.

Usage:
    store = GridStore(Path("data/example.xlsx"))
    store.ensure_workbook()
    table = store.read_range("Sheet1", "A1", "D6")
    store.write_cell("Sheet1", "A1", "Renamed")
"""

import logging
import os
import tempfile
import threading
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time
from pathlib import Path
from typing import Any

from openpyxl import Workbook, load_workbook
from openpyxl.worksheet.worksheet import Worksheet

from sheetchat.errors import SheetNotFound, WorkbookWriteError
from sheetchat.grid.addressing import CellRef, format_cell, parse_cell
from sheetchat.grid.formula import FormulaError, evaluate_formula

logger = logging.getLogger(__name__)

CellValue = str | int | float | bool | None

SAMPLE_SHEET = "Sheet1"

SAMPLE_ROWS: list[list[Any]] = [
    ["Name", "Email", "Amount", "Bonus"],
    ["Alice Smith", "alice@example.com", 1500, "=C2*0.1"],
    ["Bob Johnson", "bob@example.com", 2200, "=C3*0.1"],
    ["Carol White", "carol@example.com", 1800, "=C4*0.1"],
    ["David Brown", "david@example.com", 3000, "=C5*0.1"],
    ["Eve Davis", "eve@example.com", 2500, "=C6*0.1"],
    ["Total", None, "=SUM(C2:C6)", "=SUM(D2:D6)"],
]

SAMPLE_COLUMN_WIDTHS = {"A": 15, "B": 25, "C": 12, "D": 12}


@dataclass
class CellData:
    """Contents of one cell.

    Attributes:
        address: Sheet-qualified address, e.g. "Sheet1!D2".
        value: Stored value, or the evaluated value for formula cells.
        formula: Formula expression without the leading '=', if any.
    """

    address: str
    value: CellValue = None
    formula: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"address": self.address, "value": self.value}
        if self.formula is not None:
            result["formula"] = self.formula
        return result


@dataclass
class TableData:
    """A rectangular span: first row as headers, the rest as data rows."""

    headers: list[str] = field(default_factory=list)
    rows: list[list[CellValue]] = field(default_factory=list)
    range: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _scalar(value: Any) -> CellValue:
    """Coerce openpyxl cell values to JSON-friendly scalars."""
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def _header_text(value: CellValue) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def table_to_markdown(table: TableData) -> str:
    """Render a table as a Markdown pipe table.

    None values render as empty cells.
    """
    lines = [
        "| " + " | ".join(table.headers) + " |",
        "| " + " | ".join("---" for _ in table.headers) + " |",
    ]
    for row in table.rows:
        lines.append("| " + " | ".join(_header_text(v) for v in row) + " |")
    return "\n".join(lines)


class _SheetReader:
    """Resolves cell values for one read operation.

    Formula cells use the value cached in the file when present, otherwise
    they are evaluated. Evaluated results are memoized for the lifetime of
    the reader; a cell that depends on itself raises FormulaError.
    """

    def __init__(self, path: Path, workbook: Workbook) -> None:
        self._path = path
        self._workbook = workbook
        self._cached: Workbook | None = None
        self._memo: dict[tuple[str, CellRef], CellValue] = {}
        self._active: set[tuple[str, CellRef]] = set()

    def _cached_value(self, sheet: str, ref: CellRef) -> CellValue:
        if self._cached is None:
            self._cached = load_workbook(self._path, data_only=True)
        if sheet not in self._cached.sheetnames:
            return None
        return _scalar(
            self._cached[sheet].cell(row=ref.row + 1, column=ref.col + 1).value
        )

    def formula_of(self, sheet: str, ref: CellRef) -> str | None:
        cell = self._workbook[sheet].cell(row=ref.row + 1, column=ref.col + 1)
        if cell.data_type != "f":
            return None
        raw = cell.value if isinstance(cell.value, str) else getattr(cell.value, "text", "")
        return raw[1:] if raw.startswith("=") else raw

    def value_of(self, sheet: str, ref: CellRef) -> CellValue:
        key = (sheet, ref)
        if key in self._memo:
            return self._memo[key]

        formula = self.formula_of(sheet, ref)
        if formula is None:
            cell = self._workbook[sheet].cell(row=ref.row + 1, column=ref.col + 1)
            return _scalar(cell.value)

        value = self._cached_value(sheet, ref)
        if value is None:
            value = self._evaluate(sheet, ref, formula)
        self._memo[key] = value
        return value

    def safe_value_of(self, sheet: str, ref: CellRef) -> CellValue:
        """value_of, reporting None for formulas that cannot be evaluated."""
        try:
            return self.value_of(sheet, ref)
        except FormulaError as e:
            logger.debug(
                "Could not evaluate %s!%s: %s", sheet, ref.to_a1(), e
            )
            return None

    def _evaluate(self, sheet: str, ref: CellRef, formula: str) -> CellValue:
        key = (sheet, ref)
        if key in self._active:
            raise FormulaError(f"Circular reference at {sheet}!{ref.to_a1()}")
        self._active.add(key)
        try:
            return evaluate_formula(
                formula, lambda other, target: self._resolve(sheet, other, target)
            )
        finally:
            self._active.discard(key)

    def _resolve(self, current: str, sheet: str | None, ref: CellRef) -> CellValue:
        target = sheet or current
        if target not in self._workbook.sheetnames:
            raise FormulaError(f"Unknown sheet '{target}'")
        return self.value_of(target, ref)


class GridStore:
    """Single-writer access to one workbook file.

    Args:
        path: Location of the .xlsx file. Parent directories are created
            on demand.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def ensure_workbook(self) -> None:
        """Create the sample workbook if the file does not exist."""
        with self._lock:
            if self._path.exists():
                return
            wb = Workbook()
            ws = wb.active
            ws.title = SAMPLE_SHEET
            for row in SAMPLE_ROWS:
                ws.append(row)
            for column, width in SAMPLE_COLUMN_WIDTHS.items():
                ws.column_dimensions[column].width = width
            self._save(wb)
            logger.info("Created sample workbook at %s", self._path)

    def _load(self) -> Workbook:
        self.ensure_workbook()
        return load_workbook(self._path)

    def _save(self, wb: Workbook) -> None:
        """Save atomically through a temp file in the target directory.

        Raises:
            WorkbookWriteError: If the file system refuses the write.
        """
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent, prefix=f".{self._path.stem}-", suffix=".xlsx"
            )
        except OSError as e:
            raise WorkbookWriteError(self._path, str(e)) from e
        os.close(fd)
        try:
            wb.save(tmp_name)
            os.replace(tmp_name, self._path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            logger.error("Saving %s failed: %s", self._path, e)
            raise WorkbookWriteError(self._path, str(e)) from e
        except Exception:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    @staticmethod
    def _sheet(wb: Workbook, sheet: str) -> Worksheet:
        if sheet not in wb.sheetnames:
            raise SheetNotFound(sheet)
        return wb[sheet]

    def get_sheet_names(self) -> list[str]:
        """Return sheet names in workbook order."""
        with self._lock:
            return list(self._load().sheetnames)

    def read_cell(self, sheet: str, cell: str) -> CellData:
        """Read one cell.

        Args:
            sheet: Sheet name.
            cell: A1 address.

        Returns:
            CellData. Unpopulated cells have value None.

        Raises:
            SheetNotFound: If the sheet does not exist.
            MalformedReference: If the address cannot be parsed.
        """
        with self._lock:
            wb = self._load()
            self._sheet(wb, sheet)
            ref = parse_cell(cell)
            reader = _SheetReader(self._path, wb)
            return CellData(
                address=f"{sheet}!{ref.to_a1()}",
                value=reader.safe_value_of(sheet, ref),
                formula=reader.formula_of(sheet, ref),
            )

    def read_range(self, sheet: str, from_cell: str, to_cell: str) -> TableData:
        """Read a rectangular span.

        The first row of the span becomes the headers (stringified, "" for
        empty cells); the remaining rows are returned as data rows.

        Raises:
            SheetNotFound: If the sheet does not exist.
            MalformedReference: If either corner cannot be parsed.
        """
        with self._lock:
            wb = self._load()
            self._sheet(wb, sheet)
            return self._read_range(wb, sheet, parse_cell(from_cell), parse_cell(to_cell))

    def _read_range(
        self, wb: Workbook, sheet: str, start: CellRef, end: CellRef
    ) -> TableData:
        top, bottom = min(start.row, end.row), max(start.row, end.row)
        left, right = min(start.col, end.col), max(start.col, end.col)
        reader = _SheetReader(self._path, wb)

        headers = [
            _header_text(reader.safe_value_of(sheet, CellRef(row=top, col=col)))
            for col in range(left, right + 1)
        ]
        rows = [
            [
                reader.safe_value_of(sheet, CellRef(row=row, col=col))
                for col in range(left, right + 1)
            ]
            for row in range(top + 1, bottom + 1)
        ]
        return TableData(
            headers=headers,
            rows=rows,
            range=f"{sheet}!{format_cell(top, left)}:{format_cell(bottom, right)}",
        )

    def get_sheet_data(self, sheet: str) -> TableData:
        """Read the whole used range of a sheet starting at A1.

        Raises:
            SheetNotFound: If the sheet does not exist.
        """
        with self._lock:
            wb = self._load()
            ws = self._sheet(wb, sheet)
            if ws.max_row == 1 and ws.max_column == 1 and ws["A1"].value is None:
                return TableData(range=f"{sheet}!A1:A1")
            end = CellRef(row=ws.max_row - 1, col=ws.max_column - 1)
            return self._read_range(wb, sheet, CellRef(row=0, col=0), end)

    def write_cell(self, sheet: str, cell: str, value: str | int | float) -> CellData:
        """Write a value to a cell and save the workbook.

        Numbers are stored with the numeric type tag and everything else as
        a string; a string starting with '=' is stored as text, not as a
        formula. Any formula previously in the cell is replaced. The sheet
        dimensions grow to include the address when the file is saved.

        Raises:
            SheetNotFound: If the sheet does not exist.
            MalformedReference: If the address cannot be parsed.
            WorkbookWriteError: If the workbook cannot be saved.
        """
        with self._lock:
            wb = self._load()
            ws = self._sheet(wb, sheet)
            ref = parse_cell(cell)
            target = ws.cell(row=ref.row + 1, column=ref.col + 1)

            if isinstance(value, (int, float)) and not isinstance(value, bool):
                target.value = value
                target.data_type = "n"
            else:
                target.value = str(value)
                target.data_type = "s"

            self._save(wb)
            address = f"{sheet}!{ref.to_a1()}"
            logger.info("Wrote %s = %r", address, target.value)
            return CellData(address=address, value=_scalar(target.value))
