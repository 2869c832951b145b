"""Model-completion client for the conversation orchestrator.

The orchestrator owns the tool loop; a client only runs one model step:
given the system prompt, the history and the tool schemas, it streams text
deltas and finishes with a StepComplete describing the text and any tool
calls the model requested.

History messages use the Anthropic Messages API shape (role plus a string
or a list of content blocks); ``assistant_message`` and
``tool_results_message`` build the block lists for a tool round.
"""

import json
import logging
import os
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Protocol

from anthropic import AsyncAnthropic

logger = logging.getLogger(__name__)

# Default model resolution:
# 1) AGENT_MODEL (preferred)
# 2) ANTHROPIC_MODEL (backward compatibility)
# 3) Claude Haiku 4.5 (cost-optimized default)
DEFAULT_MODEL = (
    os.environ.get("AGENT_MODEL")
    or os.environ.get("ANTHROPIC_MODEL")
    or "claude-haiku-4-5-20251001"
)
DEFAULT_MAX_TOKENS = 4096


@dataclass
class TextDelta:
    """Incremental assistant text."""

    text: str


@dataclass
class ToolCallRequest:
    """A tool call requested by the model."""

    call_id: str
    tool_name: str
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass
class StepComplete:
    """End of one model step."""

    text: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    stop_reason: str | None = None


StepEvent = TextDelta | StepComplete


class ModelClient(Protocol):
    """One streamed model step."""

    def stream_step(
        self,
        system_prompt: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
    ) -> AsyncIterator[StepEvent]:
        ...


def assistant_message(text: str, tool_calls: list[ToolCallRequest]) -> dict[str, Any]:
    """Build the assistant history entry for a step that requested tools."""
    content: list[dict[str, Any]] = []
    if text:
        content.append({"type": "text", "text": text})
    for call in tool_calls:
        content.append({
            "type": "tool_use",
            "id": call.call_id,
            "name": call.tool_name,
            "input": call.parameters,
        })
    return {"role": "assistant", "content": content}


def tool_results_message(results: list[tuple[str, dict[str, Any]]]) -> dict[str, Any]:
    """Build the user history entry carrying tool results.

    Args:
        results: (call_id, wire-shaped result dict) pairs in call order.
    """
    return {
        "role": "user",
        "content": [
            {
                "type": "tool_result",
                "tool_use_id": call_id,
                "content": json.dumps(result, default=str),
                "is_error": bool(
                    not result.get("success") and not result.get("requiresConfirmation")
                ),
            }
            for call_id, result in results
        ],
    }


class AnthropicModelClient:
    """ModelClient backed by the Anthropic Messages streaming API.

    Args:
        model: Model id (defaults to AGENT_MODEL / ANTHROPIC_MODEL).
        max_tokens: Output token cap per step.
        client: Optional preconstructed AsyncAnthropic (reads
            ANTHROPIC_API_KEY when omitted).
    """

    def __init__(
        self,
        model: str | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        client: AsyncAnthropic | None = None,
    ) -> None:
        self._model = model or DEFAULT_MODEL
        self._max_tokens = max_tokens
        self._client = client or AsyncAnthropic()

    @property
    def model(self) -> str:
        return self._model

    async def stream_step(
        self,
        system_prompt: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
    ) -> AsyncIterator[StepEvent]:
        async with self._client.messages.stream(
            model=self._model,
            max_tokens=self._max_tokens,
            system=system_prompt,
            messages=messages,
            tools=tools,
        ) as stream:
            async for event in stream:
                if event.type == "text" and event.text:
                    yield TextDelta(text=event.text)
            final = await stream.get_final_message()

        text_parts: list[str] = []
        tool_calls: list[ToolCallRequest] = []
        for block in final.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCallRequest(
                        call_id=block.id,
                        tool_name=block.name,
                        parameters=dict(block.input or {}),
                    )
                )

        logger.debug(
            "Model step finished: stop_reason=%s tool_calls=%d",
            final.stop_reason, len(tool_calls),
        )
        yield StepComplete(
            text="".join(text_parts),
            tool_calls=tool_calls,
            stop_reason=final.stop_reason,
        )
