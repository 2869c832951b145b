"""Spreadsheet grid: addressing, formula evaluation and the workbook store."""

from sheetchat.grid.addressing import (
    CellMention,
    CellRef,
    RangeMention,
    format_cell,
    format_column,
    parse_cell,
    parse_mention,
    parse_range,
)
from sheetchat.grid.formula import FormulaError, evaluate_formula
from sheetchat.grid.store import CellData, GridStore, TableData, table_to_markdown

__all__ = [
    "CellData",
    "CellMention",
    "CellRef",
    "FormulaError",
    "GridStore",
    "RangeMention",
    "TableData",
    "evaluate_formula",
    "format_cell",
    "format_column",
    "parse_cell",
    "parse_mention",
    "parse_range",
    "table_to_markdown",
]
