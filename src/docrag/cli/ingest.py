"""docrag ingest — chunk, embed and store one document for an owner.

File types by extension:
  .pdf          → pypdf text extraction
  .docx         → python-docx paragraphs
  .html / .htm  → markup stripped (editor documents)
  anything else → UTF-8 text

Usage:
  docrag ingest invoice.pdf --document-id inv-42 --owner u1
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from docrag.cli.common import config_from
from docrag.cli.errors import (
    err_embedding_unavailable,
    err_empty_document,
    err_file_not_found,
    err_store_unavailable,
    err_unreadable_file,
)
from docrag.errors import EmbeddingUnavailableError, EmptyInputError, VectorStoreUnavailableError
from docrag.ingest.readers import read_document_text
from docrag.ingest.service import ingest_document
from docrag.services import get_vector_store

console = Console()


def ingest_cmd(
    ctx: typer.Context,
    file: Annotated[Path, typer.Argument(help="Document to ingest.")],
    document_id: Annotated[
        str,
        typer.Option("--document-id", "-d", help="Stable id of the document."),
    ],
    owner: Annotated[
        str,
        typer.Option("--owner", "-u", help="Owner (user) id the document belongs to."),
    ],
    chunk_size: Annotated[
        int | None,
        typer.Option("--chunk-size", min=1, help="Maximum chunk length in characters."),
    ] = None,
    overlap: Annotated[
        int | None,
        typer.Option("--overlap", min=0, help="Words carried over between chunks."),
    ] = None,
) -> None:
    """Ingest a document into the owner's knowledge base."""
    cfg = config_from(ctx)

    if not file.is_file():
        console.print(err_file_not_found(str(file)))
        raise typer.Exit(1)

    try:
        text = read_document_text(file)
    except Exception as exc:
        console.print(err_unreadable_file(str(file), str(exc)))
        raise typer.Exit(1)

    store = get_vector_store(cfg)
    console.print(f"\n[bold]→ {file.name}[/] as '{document_id}' (owner {owner})")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        transient=True,
        console=console,
    ) as prog:
        prog.add_task("Chunking and embedding…", total=None)
        try:
            result = asyncio.run(
                ingest_document(
                    store,
                    document_id,
                    text,
                    owner,
                    chunk_size=chunk_size or cfg.ingestion.chunk_size,
                    overlap=overlap if overlap is not None else cfg.ingestion.overlap,
                )
            )
        except EmptyInputError:
            console.print(err_empty_document(document_id))
            raise typer.Exit(1)
        except EmbeddingUnavailableError as exc:
            console.print(err_embedding_unavailable(str(exc)))
            raise typer.Exit(1)
        except VectorStoreUnavailableError as exc:
            console.print(err_store_unavailable(str(exc)))
            raise typer.Exit(1)

    console.print(f"  [green]✓[/] {result.chunks_count} chunks stored")
    if result.pruned:
        console.print(f"  [dim]↻ {result.pruned} stale chunks from a previous version removed[/]")
    if result.skipped:
        console.print(
            f"  [yellow]⚠ {result.skipped} chunks skipped:[/] document id "
            f"'{document_id}' is already used by another owner"
        )
        raise typer.Exit(1)
