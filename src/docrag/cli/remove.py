"""docrag remove — delete a document's chunks, or everything an owner stored.

Usage:
  docrag remove --document-id inv-42 --owner u1
  docrag remove --owner u1 --all --yes
"""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer
from rich.console import Console

from docrag.cli.common import config_from
from docrag.cli.errors import err_remove_target, err_store_unavailable
from docrag.errors import VectorStoreUnavailableError
from docrag.ingest.service import delete_document, delete_owner_data
from docrag.services import get_vector_store

console = Console()


def remove_cmd(
    ctx: typer.Context,
    owner: Annotated[
        str,
        typer.Option("--owner", "-u", help="Owner (user) id."),
    ],
    document_id: Annotated[
        str | None,
        typer.Option("--document-id", "-d", help="Document to remove."),
    ] = None,
    all_documents: Annotated[
        bool,
        typer.Option("--all", help="Remove every document of the owner."),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove stored chunks for a document or an owner."""
    if (document_id is None) == (not all_documents):
        console.print(err_remove_target())
        raise typer.Exit(1)

    cfg = config_from(ctx)
    store = get_vector_store(cfg)
    target = f"document '{document_id}'" if document_id else "ALL documents"
    console.print(f"\nRemove {target} of owner [bold]{owner}[/]")

    if not yes:
        if not typer.confirm("Confirm removal?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)

    try:
        if document_id:
            deleted = asyncio.run(delete_document(store, document_id, owner))
        else:
            deleted = asyncio.run(delete_owner_data(store, owner))
    except VectorStoreUnavailableError as exc:
        console.print(err_store_unavailable(str(exc)))
        raise typer.Exit(1)

    if deleted == 0:
        console.print("[yellow]Nothing to remove.[/]")
    else:
        console.print(f"\n[green]✓[/] Removed {deleted} chunks")
