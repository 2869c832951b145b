"""Shared internals for the assistant's tools.

Contains the ToolContext handed to handlers, the tagged tool-result
types, the ToolDefinition record, and the dispatch boundary that turns
every tool fault into a failed result. All tool handler submodules import
from here.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError

from sheetchat.errors import DomainError, format_error_message

if TYPE_CHECKING:
    from sheetchat.grid.store import GridStore
    from sheetchat.orchestrator.agent.gate import ConfirmationGate
    from sheetchat.services.thread_store import ThreadStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Handler Context
# ---------------------------------------------------------------------------


@dataclass
class ToolContext:
    """Collaborators available to tool handlers during one turn.

    Attributes:
        grid: Workbook store for sheet reads and writes.
        thread_store: Persistence for thread deletion.
        thread_id: Thread the current turn belongs to, if any.
    """

    grid: "GridStore"
    thread_store: "ThreadStore"
    thread_id: str | None = None


# ---------------------------------------------------------------------------
# Tool Results
# ---------------------------------------------------------------------------


@dataclass
class Deflected:
    """A gated call that was not performed and awaits user approval."""

    action: str
    description: str
    target_type: str
    target_id: str
    data: dict[str, Any] = field(default_factory=dict)
    pending_action_id: str | None = None

    success = False

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "success": False,
            "requiresConfirmation": True,
            "action": self.action,
            "description": self.description,
            "targetType": self.target_type,
            "targetId": self.target_id,
            "data": self.data,
        }
        if self.pending_action_id is not None:
            result["pendingActionId"] = self.pending_action_id
        return result


@dataclass
class ExecutedOk:
    """The tool ran and succeeded."""

    message: str
    data: Any = None

    success = True

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": True, "message": self.message}
        if self.data is not None:
            result["data"] = self.data
        return result


@dataclass
class ExecutedFail:
    """The tool was attempted and failed; state is unchanged."""

    error: str
    code: str | None = None

    success = False

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": False, "error": self.error}
        if self.code is not None:
            result["code"] = self.code
        return result


ToolResult = Deflected | ExecutedOk | ExecutedFail


@dataclass
class ToolInvocation:
    """One dispatched tool call, flattened into Message.tool_calls."""

    tool_name: str
    call_id: str
    parameters: dict[str, Any]
    result: ToolResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool_name": self.tool_name,
            "call_id": self.call_id,
            "parameters": self.parameters,
            "result": self.result.to_dict(),
        }


# ---------------------------------------------------------------------------
# Tool Definitions
# ---------------------------------------------------------------------------


@dataclass
class ActionDescription:
    """What a gated call would do, shown to the user before approval."""

    action: str
    description: str
    target_type: str
    target_id: str


@dataclass
class ToolDefinition:
    """A registered tool.

    Attributes:
        name: Tool name exposed to the model.
        description: Tool description exposed to the model.
        params_model: Pydantic model validating the arguments.
        handler: Coroutine performing the tool body, already bound to a
            ToolContext.
        gated: Whether the call must pass the confirmation gate.
        describe: For gated tools, builds the deflection description.
    """

    name: str
    description: str
    params_model: type[BaseModel]
    handler: Callable[[BaseModel], Awaitable[ToolResult]]
    gated: bool = False
    describe: Callable[[BaseModel], ActionDescription] | None = None

    @property
    def input_schema(self) -> dict[str, Any]:
        return self.params_model.model_json_schema(by_alias=True)

    def to_api_schema(self) -> dict[str, Any]:
        """Return the {name, description, input_schema} triple for the model."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


def _bind_context(
    handler: Callable[..., Awaitable[ToolResult]],
    context: ToolContext,
) -> Callable[[BaseModel], Awaitable[ToolResult]]:
    """Bind a ToolContext to a tool handler."""

    async def _wrapped(params: BaseModel) -> ToolResult:
        return await handler(params, context=context)

    return _wrapped


def find_tool(definitions: list[ToolDefinition], name: str) -> ToolDefinition | None:
    """Return the definition with this name, or None."""
    for definition in definitions:
        if definition.name == name:
            return definition
    return None


# ---------------------------------------------------------------------------
# Dispatch Boundary
# ---------------------------------------------------------------------------


def _summarize_validation_error(error: ValidationError) -> str:
    parts = []
    for detail in error.errors():
        location = ".".join(str(p) for p in detail.get("loc", ())) or "arguments"
        parts.append(f"{location}: {detail.get('msg', 'invalid')}")
    return "; ".join(parts)


async def dispatch_tool(
    definition: ToolDefinition,
    arguments: dict[str, Any],
    gate: "ConfirmationGate",
) -> ToolResult:
    """Validate arguments and run a tool through the gate.

    Never raises for tool faults: invalid arguments, domain errors and
    unexpected exceptions all come back as ExecutedFail.

    Args:
        definition: The tool to run.
        arguments: Raw arguments from the model or a pending action.
        gate: Confirmation gate for gated tools.

    Returns:
        The tool result.
    """
    try:
        params = definition.params_model.model_validate(arguments)
    except ValidationError as e:
        details = _summarize_validation_error(e)
        logger.warning("Invalid arguments for %s: %s", definition.name, details)
        return ExecutedFail(
            error=format_error_message("E-2001", tool=definition.name, details=details),
            code="E-2001",
        )

    try:
        result = await gate.run(definition, params)
    except DomainError as e:
        logger.warning("Tool %s failed: %s", definition.name, e)
        return ExecutedFail(error=str(e), code=e.code)
    except Exception as e:
        logger.exception("Tool %s raised unexpectedly", definition.name)
        return ExecutedFail(
            error=format_error_message("E-4001", details=f"{definition.name} failed: {e}"),
            code="E-4001",
        )

    logger.info(
        "Tool %s -> %s", definition.name, type(result).__name__
    )
    return result


async def dispatch_tool_call(
    definitions: list[ToolDefinition],
    name: str,
    arguments: dict[str, Any],
    gate: "ConfirmationGate",
) -> ToolResult:
    """Look a tool up by name and dispatch it; unknown names fail with E-2002."""
    definition = find_tool(definitions, name)
    if definition is None:
        logger.warning("Model requested unknown tool %s", name)
        return ExecutedFail(error=format_error_message("E-2002", tool=name), code="E-2002")
    return await dispatch_tool(definition, arguments, gate)
