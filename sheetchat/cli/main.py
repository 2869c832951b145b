"""SheetChat CLI.

Unified entry point for the API server, the in-process chat REPL, thread
management and quick sheet lookups.

Usage:
    sheetchat serve                    Start the HTTP API
    sheetchat chat                     Start conversational REPL
    sheetchat threads list             List threads
    sheetchat sheet read @Sheet1!A1:D6 Print a range
"""

import asyncio
import logging
import os
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from sqlalchemy.orm import Session, sessionmaker

from sheetchat import __version__
from sheetchat.cli.output import (
    format_cell,
    format_table_data,
    format_thread_detail,
    format_thread_table,
)
from sheetchat.config import SheetChatConfig, load_config
from sheetchat.db.connection import (
    SessionLocal,
    create_db_engine,
    create_session_factory,
    engine,
    init_db,
)
from sheetchat.db.models import generate_uuid
from sheetchat.errors import DomainError, NotFoundError
from sheetchat.grid.addressing import CellMention, parse_mention
from sheetchat.grid.store import GridStore
from sheetchat.services.thread_store import ThreadStore
from sheetchat.utils.paths import ensure_dirs_exist, get_default_workbook_path

_log = logging.getLogger(__name__)

app = typer.Typer(
    name="sheetchat",
    help="Conversational assistant for a spreadsheet workbook",
    no_args_is_help=True,
)
threads_app = typer.Typer(help="Manage chat threads")
sheet_app = typer.Typer(help="Read the workbook")
config_app = typer.Typer(help="Configuration management")

app.add_typer(threads_app, name="threads")
app.add_typer(sheet_app, name="sheet")
app.add_typer(config_app, name="config")

console = Console()

# --- Global state ---
_config_path: str | None = None


@app.callback()
def main(
    config: Optional[str] = typer.Option(
        None, "--config", help="Path to sheetchat.yaml config file"
    ),
):
    """SheetChat CLI: chat with your spreadsheet."""
    global _config_path
    _config_path = config


def _load() -> SheetChatConfig:
    """Load config and configure logging, exiting on a bad config file."""
    try:
        cfg = load_config(config_path=_config_path)
    except FileNotFoundError as e:
        console.print(f"[red]Config file not found:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    except ValidationError as e:
        console.print(f"[red]Config validation failed:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    logging.basicConfig(
        level=getattr(logging, cfg.server.log_level.upper(), logging.INFO),
        format="%(levelname)s:%(name)s:%(message)s",
    )
    return cfg


def _session_factory(cfg: SheetChatConfig) -> sessionmaker[Session]:
    """Session factory for the configured database, with tables created."""
    ensure_dirs_exist()
    if cfg.storage.database_url:
        db_engine = create_db_engine(cfg.storage.database_url)
        init_db(db_engine)
        return create_session_factory(db_engine)
    init_db(engine)
    return SessionLocal


def _grid(cfg: SheetChatConfig) -> GridStore:
    grid = GridStore(cfg.storage.workbook_path or get_default_workbook_path())
    grid.ensure_workbook()
    return grid


def _emit(output: str) -> None:
    # Output is already rendered by Rich.
    typer.echo(output.rstrip("\n"))


# --- Version ---


@app.command()
def version():
    """Show SheetChat version."""
    console.print(f"[bold]SheetChat[/bold] v{__version__}")


# --- Config commands ---


@config_app.command("show")
def config_show():
    """Display resolved configuration."""
    cfg = _load()

    console.print("[bold]Server:[/bold]")
    console.print(f"  host: {cfg.server.host}")
    console.print(f"  port: {cfg.server.port}")
    console.print(f"  log_level: {cfg.server.log_level}")

    console.print("\n[bold]Agent:[/bold]")
    console.print(f"  model: {cfg.agent.model or '(default)'}")
    console.print(f"  max_steps: {cfg.agent.max_steps}")
    console.print(f"  max_tokens: {cfg.agent.max_tokens}")

    console.print("\n[bold]Storage:[/bold]")
    console.print(f"  database_url: {cfg.storage.database_url or '(default)'}")
    console.print(
        f"  workbook_path: {cfg.storage.workbook_path or get_default_workbook_path()}"
    )


# --- Server ---


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Start the SheetChat HTTP API."""
    import uvicorn

    cfg = _load()
    final_host = host or cfg.server.host
    final_port = port or cfg.server.port

    # The API process loads the same config file as the CLI.
    if _config_path:
        os.environ["SHEETCHAT_CONFIG_PATH"] = str(_config_path)

    console.print(f"[bold]Starting SheetChat API on {final_host}:{final_port}[/bold]")
    uvicorn.run(
        "sheetchat.api.main:app",
        host=final_host,
        port=final_port,
        log_level=cfg.server.log_level,
        reload=reload,
    )


# --- Chat ---


@app.command()
def chat(
    thread: Optional[str] = typer.Option(
        None, "--thread", "-t", help="Resume an existing thread ID"
    ),
):
    """Start a conversational REPL against the workbook."""
    from sheetchat.cli.repl import run_repl
    from sheetchat.orchestrator.agent.client import AnthropicModelClient
    from sheetchat.services.conversation_service import ConversationService

    cfg = _load()
    service = ConversationService(
        _session_factory(cfg),
        _grid(cfg),
        AnthropicModelClient(model=cfg.agent.model, max_tokens=cfg.agent.max_tokens),
        max_steps=cfg.agent.max_steps,
    )
    asyncio.run(run_repl(service, thread or generate_uuid()))


# --- Thread commands ---


@threads_app.command("list")
def threads_list(
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List threads, most recently updated first."""
    factory = _session_factory(_load())
    with factory() as db:
        threads = [t.to_dict() for t in ThreadStore(db).list_threads()]
    _emit(format_thread_table(threads, as_json=as_json))


@threads_app.command("show")
def threads_show(
    thread_id: str = typer.Argument(help="Thread ID"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show a thread and its messages."""
    factory = _session_factory(_load())
    with factory() as db:
        store = ThreadStore(db)
        thread = store.get_thread(thread_id)
        if thread is None:
            console.print(f"[red]Thread '{escape(thread_id)}' not found[/red]")
            raise typer.Exit(1)
        messages = [m.to_dict() for m in store.get_messages_by_thread_id(thread_id)]
        output = format_thread_detail(thread.to_dict(), messages, as_json=as_json)
    _emit(output)


@threads_app.command("rename")
def threads_rename(
    thread_id: str = typer.Argument(help="Thread ID"),
    title: str = typer.Argument(help="New title"),
):
    """Rename a thread."""
    factory = _session_factory(_load())
    with factory() as db:
        try:
            ThreadStore(db).update_thread_title(thread_id, title)
        except NotFoundError as e:
            console.print(f"[red]{escape(str(e))}[/red]")
            raise typer.Exit(1)
    console.print(f"[green]Renamed thread {thread_id}[/green]")


@threads_app.command("delete")
def threads_delete(
    thread_id: str = typer.Argument(help="Thread ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete a thread and all its messages."""
    if not yes and not typer.confirm(f"Delete thread {thread_id} and all its messages?"):
        raise typer.Abort()
    factory = _session_factory(_load())
    with factory() as db:
        try:
            ThreadStore(db).delete_thread(thread_id)
        except NotFoundError as e:
            console.print(f"[red]{escape(str(e))}[/red]")
            raise typer.Exit(1)
    console.print(f"[green]Deleted thread {thread_id}[/green]")


# --- Sheet commands ---


@sheet_app.command("read")
def sheet_read(
    mention: str = typer.Argument(help="Mention such as @Sheet1!A1:D6 or @Sheet1!D2"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Print a cell or range from the workbook."""
    grid = _grid(_load())
    try:
        target = parse_mention(mention)
        if isinstance(target, CellMention):
            output = format_cell(grid.read_cell(target.sheet, target.cell), as_json=as_json)
        else:
            output = format_table_data(
                grid.read_range(target.sheet, target.from_cell, target.to_cell),
                as_json=as_json,
            )
    except DomainError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)
    _emit(output)


if __name__ == "__main__":
    app()
