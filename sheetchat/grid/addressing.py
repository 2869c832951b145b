"""Spreadsheet coordinate parsing and formatting.

Converts between A1 notation ("A1", "$AB$12") and 0-indexed (row, col)
coordinates, and parses the @-mentions users type in chat
("@Sheet1!A1:C10", "@Sheet1!D4").

Column letters use bijective base-26: A=1 .. Z=26, AA=27, AZ=52, BA=53.
"""

import re
from dataclasses import dataclass

from sheetchat.errors import MalformedReference

_CELL_PATTERN = re.compile(r"^\$?([A-Za-z]+)\$?([0-9]+)$")


@dataclass(frozen=True)
class CellRef:
    """0-indexed cell coordinates."""

    row: int
    col: int

    def to_a1(self) -> str:
        """Return the A1 notation for these coordinates."""
        return format_cell(self.row, self.col)


@dataclass(frozen=True)
class CellMention:
    """A single-cell mention such as ``@Sheet1!D4``."""

    sheet: str
    cell: str

    def to_dict(self) -> dict[str, str]:
        return {"sheet": self.sheet, "cell": self.cell}


@dataclass(frozen=True)
class RangeMention:
    """A rectangular range mention such as ``@Sheet1!A1:B5``."""

    sheet: str
    from_cell: str
    to_cell: str

    def to_dict(self) -> dict[str, str]:
        return {"sheet": self.sheet, "from": self.from_cell, "to": self.to_cell}


def parse_cell(ref: str) -> CellRef:
    """Parse A1 notation into 0-indexed coordinates.

    Args:
        ref: Cell reference like "A1", "d4" or "$AB$12".

    Returns:
        CellRef with 0-indexed row and column.

    Raises:
        MalformedReference: If the reference has no leading letter run,
            no trailing digit run, or a row number of 0.
    """
    match = _CELL_PATTERN.match(ref.strip()) if isinstance(ref, str) else None
    if match is None:
        raise MalformedReference(str(ref))

    letters, digits = match.groups()
    col = 0
    for char in letters.upper():
        col = col * 26 + (ord(char) - ord("A") + 1)

    row = int(digits)
    if row < 1:
        raise MalformedReference(ref, "Row numbers start at 1.")

    return CellRef(row=row - 1, col=col - 1)


def format_column(col: int) -> str:
    """Convert a 0-indexed column to its letter code (0 -> "A", 26 -> "AA")."""
    if col < 0:
        raise ValueError(f"Column index must be >= 0, got {col}")
    letters = ""
    n = col + 1
    while n > 0:
        n, remainder = divmod(n - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def format_cell(row: int, col: int) -> str:
    """Convert 0-indexed coordinates to A1 notation."""
    if row < 0:
        raise ValueError(f"Row index must be >= 0, got {row}")
    return f"{format_column(col)}{row + 1}"


def parse_range(ref: str) -> tuple[CellRef, CellRef]:
    """Parse "A1:C10" into normalized (top-left, bottom-right) corners.

    A single cell reference is treated as a 1x1 range.

    Raises:
        MalformedReference: If either corner cannot be parsed.
    """
    parts = ref.split(":")
    if len(parts) == 1:
        cell = parse_cell(parts[0])
        return cell, cell
    if len(parts) != 2:
        raise MalformedReference(ref)

    start, end = parse_cell(parts[0]), parse_cell(parts[1])
    return (
        CellRef(row=min(start.row, end.row), col=min(start.col, end.col)),
        CellRef(row=max(start.row, end.row), col=max(start.col, end.col)),
    )


def parse_mention(text: str) -> RangeMention | CellMention:
    """Parse a chat mention into a sheet-qualified range or cell.

    Args:
        text: Mention like "@Sheet1!A1:B5", "@Sheet1!D4" or "'My Sheet'!A1".

    Returns:
        RangeMention when the target contains ':', otherwise CellMention.

    Raises:
        MalformedReference: If there is no '!' separating sheet and target,
            or either side is empty.
    """
    cleaned = text.strip()
    if cleaned.startswith("@"):
        cleaned = cleaned[1:]

    sheet, sep, target = cleaned.rpartition("!")
    if not sep:
        raise MalformedReference(text, "Expected 'Sheet!Cell' or 'Sheet!From:To'.")

    if len(sheet) >= 2 and sheet.startswith("'") and sheet.endswith("'"):
        sheet = sheet[1:-1]
    if not sheet or not target:
        raise MalformedReference(text)

    if ":" in target:
        from_cell, _, to_cell = target.partition(":")
        return RangeMention(sheet=sheet, from_cell=from_cell, to_cell=to_cell)
    return CellMention(sheet=sheet, cell=target)
