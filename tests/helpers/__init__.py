"""Shared test helpers."""

from tests.helpers.scripted_model import ScriptedModelClient, text_step, tool_call, tool_step

__all__ = ["ScriptedModelClient", "text_step", "tool_call", "tool_step"]
