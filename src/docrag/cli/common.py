"""Helpers shared by docrag CLI commands."""

from __future__ import annotations

import typer

from docrag.config import DocragConfig, load_config


def config_from(ctx: typer.Context) -> DocragConfig:
    """The config loaded by the root callback (or a fresh one when invoked directly)."""
    if isinstance(ctx.obj, DocragConfig):
        return ctx.obj
    return load_config()
