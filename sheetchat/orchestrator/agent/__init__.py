"""Assistant agent: tools, confirmation gate, model client and prompt."""

from sheetchat.orchestrator.agent.client import (
    AnthropicModelClient,
    ModelClient,
    StepComplete,
    TextDelta,
    ToolCallRequest,
)
from sheetchat.orchestrator.agent.gate import ConfirmationGate
from sheetchat.orchestrator.agent.system_prompt import build_system_prompt
from sheetchat.orchestrator.agent.tools import get_all_tool_definitions

__all__ = [
    "AnthropicModelClient",
    "ConfirmationGate",
    "ModelClient",
    "StepComplete",
    "TextDelta",
    "ToolCallRequest",
    "build_system_prompt",
    "get_all_tool_definitions",
]
