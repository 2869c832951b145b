"""Read-only API routes for the workbook.

Writes are not exposed here; they go through the assistant's gated
updateCell tool only. Unknown sheets and malformed references are mapped
to 404 and 400 by the app-level DomainError handler.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query

from sheetchat.api.dependencies import get_grid
from sheetchat.api.schemas import CellResponse, SheetListResponse, TableResponse
from sheetchat.grid.store import GridStore

router = APIRouter(prefix="/sheets", tags=["sheets"])


@router.get("", response_model=SheetListResponse)
def list_sheets(grid: GridStore = Depends(get_grid)) -> dict[str, list[str]]:
    return {"sheets": grid.get_sheet_names()}


@router.get("/{sheet}", response_model=TableResponse)
def get_sheet(sheet: str, grid: GridStore = Depends(get_grid)) -> dict[str, Any]:
    """Whole used area of a sheet, first row as headers."""
    return grid.get_sheet_data(sheet).to_dict()


@router.get("/{sheet}/range", response_model=TableResponse)
def get_range(
    sheet: str,
    from_cell: str = Query(..., alias="from", description="Start cell, e.g. A1"),
    to_cell: str = Query(..., alias="to", description="End cell, e.g. D6"),
    grid: GridStore = Depends(get_grid),
) -> dict[str, Any]:
    """Rectangular range; corners may be given in any order."""
    return grid.read_range(sheet, from_cell, to_cell).to_dict()


@router.get("/{sheet}/cells/{cell}", response_model=CellResponse)
def get_cell(sheet: str, cell: str, grid: GridStore = Depends(get_grid)) -> dict[str, Any]:
    return grid.read_cell(sheet, cell).to_dict()
