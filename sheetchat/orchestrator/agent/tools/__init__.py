"""Agent tool registration: canonical entrypoint.

Imports handler functions from submodules and assembles the tool
definition list for the assistant. The catalog is fixed: two read-only
sheet tools and two gated tools (cell update, thread deletion).
"""

from sheetchat.orchestrator.agent.tools.core import (
    ActionDescription,
    Deflected,
    ExecutedFail,
    ExecutedOk,
    ToolContext,
    ToolDefinition,
    ToolInvocation,
    ToolResult,
    _bind_context,
    dispatch_tool,
    dispatch_tool_call,
    find_tool,
)
from sheetchat.orchestrator.agent.tools.sheet import (
    GetRangeParams,
    ReadCellParams,
    UpdateCellParams,
    describe_update_cell,
    get_range_tool,
    read_cell_tool,
    update_cell_tool,
)
from sheetchat.orchestrator.agent.tools.threads import (
    DeleteThreadParams,
    delete_thread_tool,
    describe_delete_thread,
)


def get_all_tool_definitions(context: ToolContext) -> list[ToolDefinition]:
    """Return all tool definitions with handlers bound to a context.

    Each definition includes name, description, input_schema (from its
    parameter model), handler, and whether it is gated.
    """
    return [
        ToolDefinition(
            name="getRange",
            description="Read a range of cells from the spreadsheet",
            params_model=GetRangeParams,
            handler=_bind_context(get_range_tool, context),
        ),
        ToolDefinition(
            name="readCell",
            description=(
                "Read a single cell from the spreadsheet, useful for getting "
                "cell formulas"
            ),
            params_model=ReadCellParams,
            handler=_bind_context(read_cell_tool, context),
        ),
        ToolDefinition(
            name="updateCell",
            description=(
                "Update a cell in the spreadsheet. Set confirmed=false to "
                "request user confirmation first."
            ),
            params_model=UpdateCellParams,
            handler=_bind_context(update_cell_tool, context),
            gated=True,
            describe=describe_update_cell,
        ),
        ToolDefinition(
            name="deleteThreadTool",
            description=(
                "Delete a chat thread. Set confirmed=false to request user "
                "confirmation first."
            ),
            params_model=DeleteThreadParams,
            handler=_bind_context(delete_thread_tool, context),
            gated=True,
            describe=describe_delete_thread,
        ),
    ]


__all__ = [
    "ActionDescription",
    "Deflected",
    "DeleteThreadParams",
    "ExecutedFail",
    "ExecutedOk",
    "GetRangeParams",
    "ReadCellParams",
    "ToolContext",
    "ToolDefinition",
    "ToolInvocation",
    "ToolResult",
    "UpdateCellParams",
    "dispatch_tool",
    "dispatch_tool_call",
    "find_tool",
    "get_all_tool_definitions",
]
