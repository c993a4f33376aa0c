"""docrag ask — answer a question grounded in the owner's documents.

Steps:
  1. Validate the provider API key for generation.model.
  2. Load recent session turns as conversation context (--history, default on).
  3. Run the pipeline: retrieve → generate → materialize → save turns.
  4. Print the answer (or --json), and write any generated file with --save-dir.

Usage:
  docrag ask "What is the invoice total?" --owner u1 --session s1
  docrag ask "Write a proposal: ..." --owner u1 --save-dir out --yes
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from docrag.cli.common import config_from
from docrag.cli.errors import (
    err_embedding_unavailable,
    err_generation_failed,
    err_no_api_key,
    err_output_path_unsafe,
    err_store_unavailable,
)
from docrag.config import DocragConfig
from docrag.errors import (
    EmbeddingUnavailableError,
    EmptyInputError,
    GenerationFailedError,
    PersistenceError,
    VectorStoreUnavailableError,
)
from docrag.generate.writer import save_document, validate_output_path
from docrag.rag.llm_client import validate_api_key
from docrag.rag.pipeline import QueryInput, QueryResult, StageStatus
from docrag.services import build_pipeline, get_conversation_store

console = Console()


def ask_cmd(
    ctx: typer.Context,
    query: Annotated[str, typer.Argument(help="Question to answer.")],
    owner: Annotated[
        str,
        typer.Option("--owner", "-u", help="Owner (user) id whose documents are searched."),
    ],
    session: Annotated[
        str | None,
        typer.Option("--session", "-s", help="Chat session id; turns are saved when set."),
    ] = None,
    doc: Annotated[
        list[str] | None,
        typer.Option("--doc", help="Restrict retrieval to this document id (repeatable)."),
    ] = None,
    no_search: Annotated[
        bool,
        typer.Option("--no-search", help="Answer without searching documents."),
    ] = False,
    require_search: Annotated[
        bool,
        typer.Option("--require-search", help="Fail instead of answering without documents."),
    ] = False,
    context: Annotated[
        str | None,
        typer.Option("--context", help="Extra conversation context to include."),
    ] = None,
    history: Annotated[
        bool,
        typer.Option("--history/--no-history", help="Include recent turns of --session."),
    ] = True,
    save_dir: Annotated[
        str | None,
        typer.Option("--save-dir", help="Write a generated document into this directory."),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Overwrite existing files without asking."),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Print the result as JSON."),
    ] = False,
) -> None:
    """Ask a question about your documents."""
    cfg = config_from(ctx)

    provider = cfg.generation.model.split("/")[0] if "/" in cfg.generation.model else "openai"
    try:
        validate_api_key(cfg.generation.model)
    except EnvironmentError:
        console.print(err_no_api_key(provider))
        raise typer.Exit(1)

    if save_dir is not None:
        try:
            validate_output_path(save_dir, f"{cfg.documents.filename}.pdf")
        except ValueError:
            console.print(err_output_path_unsafe(save_dir))
            raise typer.Exit(1)

    request = QueryInput(
        query=query,
        owner_id=owner,
        session_id=session,
        use_semantic_search=not no_search,
        document_ids=tuple(doc) if doc else None,
        conversation_context=context,
        require_semantic_search=require_search,
    )

    try:
        result = asyncio.run(_run(cfg, request, with_history=history))
    except GenerationFailedError:
        console.print(err_generation_failed())
        raise typer.Exit(1)
    except EmptyInputError:
        console.print("[red]Error:[/] The question is empty.")
        raise typer.Exit(1)
    except EmbeddingUnavailableError as exc:
        console.print(err_embedding_unavailable(str(exc)))
        raise typer.Exit(1)
    except VectorStoreUnavailableError as exc:
        console.print(err_store_unavailable(str(exc)))
        raise typer.Exit(1)

    if json_output:
        typer.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        _print_result(result)

    if result.document_file is not None and save_dir is not None:
        path = save_document(result.document_file, save_dir, yes=yes)
        if path is None:
            console.print("  [dim]Document not saved.[/]")
        elif not json_output:
            console.print(f"\n[green]✓[/] Saved: {path}")


async def _run(cfg: DocragConfig, request: QueryInput, with_history: bool) -> QueryResult:
    if with_history and request.session_id and cfg.retrieval.history_turns > 0:
        try:
            previous = await get_conversation_store(cfg).recent_context(
                request.session_id, cfg.retrieval.history_turns
            )
        except PersistenceError as exc:
            console.print(f"[yellow]⚠ Conversation history unavailable:[/] {exc}")
            previous = ""
        parts = [p for p in (previous, request.conversation_context) if p]
        if parts:
            request = dataclasses.replace(request, conversation_context="\n\n".join(parts))
    return await build_pipeline(cfg).run_query(request)


def _print_result(result: QueryResult) -> None:
    console.print()
    console.print(result.response, markup=False, highlight=False)

    if result.referenced_documents:
        console.print(f"\n[dim]Sources: {', '.join(result.referenced_documents)}[/]")

    for outcome in result.outcomes:
        if outcome.status == StageStatus.DEGRADED:
            console.print(f"[yellow]⚠ {outcome.stage} degraded:[/] {escape(outcome.error or '')}")

    if result.document_file is not None:
        doc = result.document_file
        console.print(
            f"\n[bold]Document:[/] {doc.name} ({doc.size_bytes:,} bytes, {doc.mime_type})"
        )
