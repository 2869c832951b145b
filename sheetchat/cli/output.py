"""CLI output formatters for Rich tables and JSON.

Provides human-readable Rich output (default) and machine-parseable JSON
output (--json flag). Every formatter returns a string so the commands
stay free of rendering details.
"""

import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from sheetchat.grid.store import CellData, TableData

console = Console()

ROLE_COLORS = {
    "user": "green",
    "assistant": "cyan",
    "system": "yellow",
    "tool": "magenta",
}


def _render(renderable: Any) -> str:
    with console.capture() as capture:
        console.print(renderable)
    return capture.get()


def format_thread_table(threads: list[dict[str, Any]], as_json: bool = False) -> str:
    """Format thread summaries as a Rich table or JSON.

    Args:
        threads: Thread dicts as returned by Thread.to_dict().
        as_json: If True, return JSON string instead of Rich table.

    Returns:
        Formatted string output.
    """
    if as_json:
        return json.dumps(threads, indent=2)

    if not threads:
        return "No threads found."

    table = Table(title="Threads")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title", style="white")
    table.add_column("Updated")
    for thread in threads:
        table.add_row(escape(thread["id"]), escape(thread["title"]), thread["updated_at"][:19])
    return _render(table)


def format_thread_detail(
    thread: dict[str, Any], messages: list[dict[str, Any]], as_json: bool = False
) -> str:
    """Format a thread and its message log.

    Args:
        thread: Thread dict.
        messages: Message dicts in order.
        as_json: If True, return JSON string instead of Rich output.

    Returns:
        Formatted string output.
    """
    if as_json:
        return json.dumps({**thread, "messages": messages}, indent=2)

    lines = [
        f"[bold]Thread:[/bold]  {escape(thread['id'])}",
        f"[bold]Title:[/bold]   {escape(thread['title'])}",
        f"[bold]Updated:[/bold] {thread['updated_at'][:19]}",
        "",
    ]
    if not messages:
        lines.append("[dim]No messages.[/dim]")
    for message in messages:
        color = ROLE_COLORS.get(message["role"], "white")
        lines.append(f"[{color}]{message['role']}[/{color}]: {escape(message['content'])}")
        if message.get("tool_calls"):
            for call in json.loads(message["tool_calls"]):
                lines.append(f"  [dim]tool {call.get('tool_name')}[/dim]")

    return _render(Panel("\n".join(lines), title="Thread Detail", border_style="cyan"))


def format_table_data(table_data: TableData, as_json: bool = False) -> str:
    """Format a sheet range as a Rich table or JSON."""
    if as_json:
        return json.dumps(table_data.to_dict(), indent=2, default=str)

    table = Table(title=table_data.range)
    for header in table_data.headers:
        table.add_column(escape(header or ""))
    for row in table_data.rows:
        table.add_row(*["" if value is None else escape(str(value)) for value in row])
    return _render(table)


def format_cell(cell: CellData, as_json: bool = False) -> str:
    """Format a single cell, showing its formula when present."""
    if as_json:
        return json.dumps(cell.to_dict(), indent=2, default=str)
    line = f"[bold]{escape(cell.address)}[/bold] = {escape(repr(cell.value))}"
    if cell.formula:
        line += f"  [dim](={escape(cell.formula)})[/dim]"
    return _render(line)
