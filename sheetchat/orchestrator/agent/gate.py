"""Confirmation gate for mutating tool calls.

Per call:
    Proposed --(confirmed false/absent)--> Deflected
    Proposed --(confirmed true)--> Executing --> ExecutedOk | fault

A deflection performs no grid or thread-store write. When the gate has a
recorder, it persists the proposed call as a pending action and returns
the action id with the deflection so the client can approve it directly.
The gate keeps no per-call state between calls.
"""

import logging
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel

from sheetchat.orchestrator.agent.tools.core import (
    Deflected,
    ToolDefinition,
    ToolResult,
)

logger = logging.getLogger(__name__)

# (tool_name, parameters, description) -> pending action id
PendingActionRecorder = Callable[[str, dict[str, Any], str], str]


class ConfirmationGate:
    """Routes gated tools through a confirm/execute decision.

    Args:
        recorder: Optional callback that persists a deflected call and
            returns its pending action id.
    """

    def __init__(self, recorder: PendingActionRecorder | None = None) -> None:
        self._recorder = recorder

    async def run(self, definition: ToolDefinition, params: BaseModel) -> ToolResult:
        """Execute a validated call, or deflect it if it needs approval.

        Faults raised by the tool body propagate to the dispatch boundary.
        """
        if not definition.gated:
            return await definition.handler(params)

        if getattr(params, "confirmed", False):
            logger.info("Executing confirmed %s", definition.name)
            return await definition.handler(params)

        return self.deflect(definition, params)

    def deflect(self, definition: ToolDefinition, params: BaseModel) -> Deflected:
        """Build the deflection for an unconfirmed gated call."""
        if definition.describe is None:
            raise ValueError(f"Gated tool {definition.name} has no describe function")

        described = definition.describe(params)
        data = params.model_dump(by_alias=True, exclude={"confirmed"})

        pending_action_id = None
        if self._recorder is not None:
            pending_action_id = self._recorder(definition.name, data, described.description)

        logger.info(
            "Deflected %s on %s (pending action %s)",
            definition.name, described.target_id, pending_action_id,
        )
        return Deflected(
            action=described.action,
            description=described.description,
            target_type=described.target_type,
            target_id=described.target_id,
            data=data,
            pending_action_id=pending_action_id,
        )
