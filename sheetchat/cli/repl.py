"""Interactive conversational REPL for the SheetChat assistant.

Runs turns in-process through the ConversationService, renders streamed
text with Rich, and asks the user to approve or reject every gated
action the assistant proposes.
"""

import logging
from typing import Any

from anthropic import APIError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm

from sheetchat.services.confirmation_relay import ConfirmationRelay
from sheetchat.services.conversation_service import ConversationService

logger = logging.getLogger(__name__)

console = Console()


async def _run_turn(
    service: ConversationService, relay: ConfirmationRelay, thread_id: str, text: str
) -> None:
    async for event in service.process_message_stream(thread_id, text):
        relay.observe(event)
        kind, data = event["event"], event["data"]
        if kind == "agent_message_delta":
            console.print(data["text"], end="", markup=False, highlight=False)
        elif kind == "tool_call":
            console.print(f"\n[dim]Tool: {escape(data['tool_name'])}[/dim]")
        elif kind == "tool_result" and not data["result"].get("success"):
            if not data["result"].get("requiresConfirmation"):
                console.print(f"[red]{escape(str(data['result'].get('error')))}[/red]")
        elif kind == "done" and data.get("step_limit_reached"):
            console.print("\n[yellow]Stopped after reaching the step limit.[/yellow]")
    console.print()


def _describe_result(result: Any) -> str:
    wire = result.to_dict()
    if wire.get("success"):
        return f"[green]{escape(str(wire.get('message')))}[/green]"
    return f"[red]{escape(str(wire.get('error')))}[/red]"


async def _resolve_pending(service: ConversationService, relay: ConfirmationRelay) -> None:
    pending = relay.pending
    if pending is None:
        return
    console.print(Panel(escape(pending.description), title="Confirmation required", border_style="yellow"))
    if Confirm.ask("Apply this change?", default=False):
        result = await relay.approve(service.approve_pending_action)
        console.print(_describe_result(result))
    else:
        await relay.reject(service.reject_pending_action)
        console.print("[yellow]Declined.[/yellow]")


async def run_repl(service: ConversationService, thread_id: str) -> None:
    """Run the interactive conversational REPL.

    Args:
        service: In-process conversation orchestrator.
        thread_id: Thread to append to (created on the first message).
    """
    relay = ConfirmationRelay()

    console.print(f"[dim]Thread: {thread_id}[/dim]")
    console.print()
    console.print("[bold]SheetChat[/bold] interactive mode")
    console.print("Mention cells like @Sheet1!A1:D6. Ctrl+D to exit.")
    console.print()

    while True:
        try:
            user_input = console.input("[bold green]> [/bold green]")
        except EOFError:
            break

        if not user_input.strip():
            continue

        try:
            await _run_turn(service, relay, thread_id, user_input)
        except APIError as e:
            console.print(f"\n[red]Model error: {escape(str(e))}[/red]")
            continue
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted[/yellow]")
            continue
        except Exception as e:
            logger.exception("Turn on thread %s failed", thread_id)
            console.print(f"\n[red]Turn failed: {escape(str(e))}[/red]")
            continue

        await _resolve_pending(service, relay)

    console.print("\n[dim]Session ended.[/dim]")
