"""docrag rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from docrag.cli.errors import err_no_api_key
    console.print(err_no_api_key("groq"))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'groq'. Set:  export GROQ_API_KEY=...
    """
    env_map = {
        "openai": "OPENAI_API_KEY",
        "anthropic": "ANTHROPIC_API_KEY",
        "cohere": "COHERE_API_KEY",
        "groq": "GROQ_API_KEY",
        "mistral": "MISTRAL_API_KEY",
        "azure": "AZURE_API_KEY",
        "together_ai": "TOGETHERAI_API_KEY",
    }
    env_var = env_map.get(provider.lower(), f"{provider.upper()}_API_KEY")
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=..."
    )


def err_generation_failed() -> str:
    """The language model call failed; the run produced no answer."""
    return (
        "[red]Error:[/] Failed to generate response, please retry.\n"
        "  If this keeps happening, check the provider status and your generation.model."
    )


def err_config(message: str) -> str:
    """Configuration file could not be loaded."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {message}\n"
        "  Fix docrag.yaml (or ~/.docrag/config.yaml) and retry."
    )


def err_file_not_found(path: str) -> str:
    return (
        f"[red]Error:[/] File not found: '{path}'\n"
        "  Check the path and retry."
    )


def err_unreadable_file(path: str, reason: str) -> str:
    return (
        f"[red]Error:[/] Could not read '{path}': {reason}\n"
        "  Supported: .pdf, .docx, .html, and UTF-8 text files."
    )


def err_empty_document(document_id: str) -> str:
    return (
        f"[red]Error:[/] Document '{document_id}' has no text to ingest.\n"
        "  Scanned PDFs need OCR before ingestion."
    )


def err_embedding_unavailable(reason: str) -> str:
    """Embedding model could not be loaded or did not respond."""
    return (
        f"[red]Error:[/] Embedding model unavailable: {reason}\n"
        "  Check embedding.model / embedding.backend in docrag.yaml, "
        "or retry once the model can be downloaded."
    )


def err_store_unavailable(reason: str) -> str:
    """Vector store could not be opened or written."""
    return (
        f"[red]Error:[/] Vector store unavailable: {reason}\n"
        "  Check vector_store.path in docrag.yaml (or DOCRAG_DB_PATH)."
    )


def err_output_path_unsafe(path: str) -> str:
    """--save-dir path fails security validation."""
    return (
        f"[red]Error:[/] Output path is not allowed: '{path}'\n"
        "  Use a directory within the current working directory."
    )


def err_remove_target() -> str:
    """remove called without exactly one target."""
    return (
        "[red]Error:[/] Specify what to remove.\n"
        "  One document:        docrag remove --document-id ID --owner OWNER\n"
        "  All owner documents: docrag remove --owner OWNER --all"
    )


def err_no_db(db_path: str) -> str:
    """No database at the configured path."""
    return (
        f"[yellow]No database found at '{db_path}'.[/]\n"
        "  Run:  docrag ingest FILE --document-id ID --owner OWNER"
    )
