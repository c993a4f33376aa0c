"""docrag CLI entry point."""

from __future__ import annotations

import importlib.metadata
from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich.console import Console

from docrag.cli.ask import ask_cmd
from docrag.cli.errors import err_config
from docrag.cli.history import history_cmd
from docrag.cli.ingest import ingest_cmd
from docrag.cli.remove import remove_cmd
from docrag.cli.status import status_cmd
from docrag.config import ConfigError, load_config
from docrag.log import setup_logger

console = Console()


def _installed_version() -> str:
    try:
        return importlib.metadata.version("docrag")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"docrag {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="docrag",
    help=(
        "docrag — ask questions about your business documents.\n\n"
        "  docrag ingest  Chunk, embed and store a document for an owner.\n"
        "  docrag ask     Answer a question grounded in the owner's documents."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    config_dir: Annotated[
        Path | None,
        typer.Option("--config-dir", help="Directory containing docrag.yaml (default: CWD)."),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)."),
    ] = None,
) -> None:
    """docrag — retrieval-augmented answers over business documents."""
    try:
        cfg = load_config(config_dir)
    except (ConfigError, yaml.YAMLError) as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)
    setup_logger(log_level or cfg.logging.level, cfg.logging.file)
    ctx.obj = cfg


app.command("ingest")(ingest_cmd)
app.command("ask")(ask_cmd)
app.command("remove")(remove_cmd)
app.command("history")(history_cmd)
app.command("status")(status_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed docrag version."""
    typer.echo(f"docrag {_installed_version()}")


if __name__ == "__main__":
    app()
