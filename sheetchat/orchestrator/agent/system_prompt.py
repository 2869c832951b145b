"""System prompt builder for the spreadsheet assistant.

Merges the fixed tool-usage rules with the current workbook catalog. The
sheet list is refreshed per turn so the assistant always sees the sheets
that actually exist.

Example:
    prompt = build_system_prompt(sheet_names=grid.get_sheet_names())
"""

from datetime import datetime

# Static layout hints for sheets whose structure is known up front.
SHEET_LAYOUT_HINTS: dict[str, str] = {
    "Sheet1": "Names, Emails, Amounts, and Bonus calculations",
}


def _build_sheets_section(sheet_names: list[str]) -> str:
    if not sheet_names:
        return "The workbook currently has no sheets."

    lines = [
        "Available spreadsheet: The file contains data in these sheets: "
        + ", ".join(sheet_names)
        + "."
    ]
    for name in sheet_names:
        hint = SHEET_LAYOUT_HINTS.get(name)
        if hint:
            lines.append(f'Sheet "{name}" contains: {hint}.')
    return "\n".join(lines)


def build_system_prompt(sheet_names: list[str], thread_id: str | None = None) -> str:
    """Build the system prompt for one turn.

    Args:
        sheet_names: Sheet names in workbook order.
        thread_id: Current thread id, so the assistant can refer to it.

    Returns:
        Complete system prompt string.
    """
    sections = [
        "You are a helpful AI assistant that can work with spreadsheet data.",
        _build_sheets_section(sheet_names),
        "\n".join([
            "## Tools",
            "",
            "- When the user mentions ranges like @Sheet1!A1:B5, use the getRange "
            "tool to read that data. A mention like @Sheet1!D4 refers to a single "
            "cell; use readCell for it, which also reports formulas.",
            "- When asked to update cells, ALWAYS use the updateCell tool with "
            "confirmed=false first to trigger user confirmation.",
            "- When asked to delete threads, use the deleteThreadTool tool with "
            "confirmed=false first.",
            "- Only set confirmed=true after the user has explicitly approved the "
            "exact action that was described to them.",
            "- A tool result with requiresConfirmation=true means the action has "
            "NOT been performed yet. Tell the user what is waiting for approval.",
        ]),
        "After reading spreadsheet data, display it nicely formatted for the user. "
        "If a user selects cells or mentions a range, help them understand or "
        "manipulate that data.",
    ]
    if thread_id:
        sections.append(f"The current conversation thread id is {thread_id}.")
    sections.append(f"Current date: {datetime.now().strftime('%Y-%m-%d')}")
    return "\n\n".join(sections)
