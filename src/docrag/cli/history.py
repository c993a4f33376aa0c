"""docrag history — show the saved turns of a chat session."""

from __future__ import annotations

import asyncio
import json
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from docrag.cli.common import config_from
from docrag.errors import PersistenceError
from docrag.services import get_conversation_store

console = Console()


def history_cmd(
    ctx: typer.Context,
    session: Annotated[
        str,
        typer.Option("--session", "-s", help="Chat session id."),
    ],
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", min=1, help="Show only the latest N turns."),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Print turns as JSON."),
    ] = False,
) -> None:
    """List the turns of a chat session, oldest first."""
    cfg = config_from(ctx)
    try:
        turns = asyncio.run(get_conversation_store(cfg).list_turns(session, limit))
    except PersistenceError as exc:
        console.print(f"[red]Error:[/] {exc}")
        raise typer.Exit(1)

    if json_output:
        typer.echo(json.dumps([t.to_dict() for t in turns], indent=2, ensure_ascii=False))
        return

    if not turns:
        console.print(f"[yellow]No turns saved for session '{session}'.[/]")
        return

    table = Table(title=f"Session {session}", show_lines=True)
    table.add_column("When", style="dim", no_wrap=True)
    table.add_column("Role", style="bold")
    table.add_column("Content")
    table.add_column("Documents", style="cyan")
    for turn in turns:
        table.add_row(
            turn.created_at or "",
            turn.role,
            escape(turn.content),
            ", ".join(turn.referenced_docs),
        )
    console.print(table)
