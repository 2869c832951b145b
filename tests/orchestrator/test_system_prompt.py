"""Tests for the system prompt builder."""

from sheetchat.orchestrator.agent.system_prompt import build_system_prompt


def test_lists_sheets_with_layout_hints():
    prompt = build_system_prompt(["Sheet1", "Notes"])
    assert "Sheet1, Notes" in prompt
    assert "Names, Emails, Amounts, and Bonus calculations" in prompt


def test_states_confirmation_rules():
    prompt = build_system_prompt(["Sheet1"])
    assert "confirmed=false" in prompt
    assert "requiresConfirmation=true" in prompt


def test_includes_thread_id_when_given():
    assert "thread id is t-42" in build_system_prompt(["Sheet1"], thread_id="t-42")
    assert "thread id" not in build_system_prompt(["Sheet1"])


def test_empty_workbook():
    assert "no sheets" in build_system_prompt([])
