"""docrag status — configuration and knowledge base overview."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from docrag.cli.common import config_from
from docrag.cli.errors import err_no_db
from docrag.config import DocragConfig
from docrag.errors import VectorStoreUnavailableError
from docrag.services import get_vector_store

console = Console()


def status_cmd(ctx: typer.Context) -> None:
    """Show configuration, database and collection statistics."""
    cfg = config_from(ctx)

    _show_config_panel(cfg)

    db = Path(cfg.vector_store.path)
    if not db.exists():
        console.print(Panel(err_no_db(str(db)), title="[bold]Knowledge Base[/]", expand=False))
        return

    store = get_vector_store(cfg)
    try:
        stats = asyncio.run(store.stats())
    except VectorStoreUnavailableError as exc:
        console.print(
            Panel(
                f"[red]Unavailable:[/] {exc}",
                title="[bold]Knowledge Base[/]",
                expand=False,
            )
        )
        raise typer.Exit(1)

    size_mb = db.stat().st_size / (1024 * 1024)
    lines = [
        f"Database:    {db} ({size_mb:.1f} MB)",
        f"Collection:  [bold]{stats.collection}[/]  ({stats.dimensions}-d, {stats.embedding_model})",
        f"Chunks: [bold]{stats.chunk_count:,}[/]  |  "
        f"Documents: [bold]{stats.document_count:,}[/]  |  "
        f"Owners: [bold]{stats.owner_count:,}[/]",
    ]
    if stats.embedding_model and stats.embedding_model != cfg.embedding.model:
        lines.append(
            f"[yellow]⚠ Collection was built with {stats.embedding_model}, "
            f"config has {cfg.embedding.model}[/]"
        )
    console.print(Panel("\n".join(lines), title="[bold]Knowledge Base[/]", expand=False))


def _show_config_panel(cfg: DocragConfig) -> None:
    lines = [
        f"Generation:  {cfg.generation.model} (temperature {cfg.generation.temperature})",
        f"Embedding:   {cfg.embedding.model} ({cfg.embedding.backend}, {cfg.embedding.dimensions}-d)",
        f"Retrieval:   top_k {cfg.retrieval.top_k}, min_score {cfg.retrieval.min_score}",
        f"Documents:   {'on' if cfg.documents.enabled else 'off'}",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Configuration[/]", expand=False))
