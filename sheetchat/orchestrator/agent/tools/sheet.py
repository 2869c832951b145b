"""Spreadsheet tool handlers: getRange, readCell, updateCell."""

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr

from sheetchat.grid.store import table_to_markdown
from sheetchat.orchestrator.agent.tools.core import (
    ActionDescription,
    ExecutedOk,
    ToolContext,
    ToolResult,
)


class GetRangeParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sheet: str = Field(description='Sheet name (e.g., "Sheet1")')
    from_cell: str = Field(alias="from", description='Starting cell reference (e.g., "A1")')
    to_cell: str = Field(alias="to", description='Ending cell reference (e.g., "C10")')


class ReadCellParams(BaseModel):
    sheet: str = Field(description="Sheet name")
    cell: str = Field(description='Cell reference (e.g., "D4")')


class UpdateCellParams(BaseModel):
    sheet: str = Field(description='Sheet name (e.g., "Sheet1")')
    cell: str = Field(description='Cell reference (e.g., "A1")')
    value: StrictStr | StrictInt | StrictFloat = Field(description="New value to write")
    confirmed: StrictBool | None = Field(
        default=False, description="Whether user has confirmed this action"
    )


async def get_range_tool(params: GetRangeParams, context: ToolContext) -> ToolResult:
    """Read a rectangular range; data carries the table plus a Markdown rendering."""
    table = context.grid.read_range(params.sheet, params.from_cell, params.to_cell)
    data = table.to_dict()
    data["markdown"] = table_to_markdown(table)
    return ExecutedOk(
        message=f"Here is the data from {params.sheet}!{params.from_cell}:{params.to_cell}",
        data=data,
    )


async def read_cell_tool(params: ReadCellParams, context: ToolContext) -> ToolResult:
    """Read one cell, mentioning its formula when it has one."""
    cell = context.grid.read_cell(params.sheet, params.cell)
    address = f"{params.sheet}!{params.cell}"
    if cell.formula is not None:
        message = (
            f"Cell {address} contains formula ={cell.formula} "
            f"which evaluates to {cell.value}"
        )
    else:
        message = f"Cell {address} contains value: {cell.value}"
    return ExecutedOk(message=message, data=cell.to_dict())


def describe_update_cell(params: UpdateCellParams) -> ActionDescription:
    target = f"{params.sheet}!{params.cell}"
    return ActionDescription(
        action="update",
        description=f'Update cell {target} to "{params.value}"',
        target_type="cell",
        target_id=target,
    )


async def update_cell_tool(params: UpdateCellParams, context: ToolContext) -> ToolResult:
    """Write a value to a cell. Only reached with confirmed=true."""
    context.grid.write_cell(params.sheet, params.cell, params.value)
    return ExecutedOk(
        message=f'Successfully updated cell {params.sheet}!{params.cell} to "{params.value}"'
    )
