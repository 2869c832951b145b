"""Tests for the model client and history message builders."""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from sheetchat.orchestrator.agent.client import (
    AnthropicModelClient,
    StepComplete,
    TextDelta,
    ToolCallRequest,
    assistant_message,
    tool_results_message,
)


class FakeStream:
    """Stands in for the SDK's MessageStream context manager."""

    def __init__(self, events, final):
        self._events = events
        self._final = final

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for event in self._events:
            yield event

    async def get_final_message(self):
        return self._final


def _sdk_client(events, final):
    client = MagicMock()
    client.messages.stream = MagicMock(return_value=FakeStream(events, final))
    return client


class TestAnthropicModelClient:
    @pytest.mark.asyncio
    async def test_streams_text_and_tool_calls(self):
        events = [
            SimpleNamespace(type="text", text="Let me "),
            SimpleNamespace(type="text", text="look."),
            SimpleNamespace(type="content_block_stop"),
        ]
        final = SimpleNamespace(
            stop_reason="tool_use",
            content=[
                SimpleNamespace(type="text", text="Let me look."),
                SimpleNamespace(
                    type="tool_use",
                    id="toolu_1",
                    name="getRange",
                    input={"sheet": "Sheet1", "from": "A1", "to": "B2"},
                ),
            ],
        )
        sdk = _sdk_client(events, final)
        client = AnthropicModelClient(model="test-model", max_tokens=128, client=sdk)

        out = [e async for e in client.stream_step("system", [{"role": "user", "content": "hi"}], [])]

        assert out[:2] == [TextDelta(text="Let me "), TextDelta(text="look.")]
        assert out[2] == StepComplete(
            text="Let me look.",
            tool_calls=[
                ToolCallRequest(
                    call_id="toolu_1",
                    tool_name="getRange",
                    parameters={"sheet": "Sheet1", "from": "A1", "to": "B2"},
                )
            ],
            stop_reason="tool_use",
        )
        kwargs = sdk.messages.stream.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["max_tokens"] == 128
        assert kwargs["system"] == "system"

    def test_model_defaults(self):
        client = AnthropicModelClient(client=MagicMock())
        assert client.model


class TestHistoryBuilders:
    def test_assistant_message_blocks(self):
        message = assistant_message(
            "Checking", [ToolCallRequest(call_id="c1", tool_name="readCell", parameters={"cell": "A1"})]
        )
        assert message == {
            "role": "assistant",
            "content": [
                {"type": "text", "text": "Checking"},
                {"type": "tool_use", "id": "c1", "name": "readCell", "input": {"cell": "A1"}},
            ],
        }

    def test_assistant_message_without_text(self):
        message = assistant_message("", [ToolCallRequest(call_id="c1", tool_name="readCell")])
        assert [block["type"] for block in message["content"]] == ["tool_use"]

    def test_tool_results_error_flags(self):
        ok = {"success": True, "message": "done"}
        deflected = {"success": False, "requiresConfirmation": True, "description": "x"}
        failed = {"success": False, "error": "boom"}

        message = tool_results_message([("a", ok), ("b", deflected), ("c", failed)])

        assert message["role"] == "user"
        blocks = message["content"]
        assert [b["tool_use_id"] for b in blocks] == ["a", "b", "c"]
        assert [b["is_error"] for b in blocks] == [False, False, True]
        assert json.loads(blocks[0]["content"]) == ok
