"""Saving generated documents to disk (CLI only) with security guards.

Responsibilities:
  1. Validate the target path: relative save directories are confined to CWD,
     file names must be bare names. Path traversal → hard fail.
  2. Overwrite protection: if the file exists, prompt the user (--yes skips).
  3. Write the decoded document bytes atomically (temp file → rename).
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import typer

from docrag.generate.materializer import GeneratedDocument


# ------------------------------------------------------------------
# Path validation (path traversal prevention)
# ------------------------------------------------------------------


def validate_output_path(
    save_dir: str, filename: str, allowed_base: Path | None = None
) -> Path:
    """Resolve ``save_dir / filename`` and validate it.

    - Absolute directories are accepted as-is (user explicitly chose them).
    - Relative directories are confined to *allowed_base* (default: CWD).
    - *filename* must not contain directory components.

    Returns:
        Resolved absolute Path of the file.

    Raises:
        ValueError: If the path escapes the allowed base or *filename* is not a bare name.
    """
    if not filename or Path(filename).name != filename or filename in (".", ".."):
        raise ValueError(f"Invalid document file name '{filename}'.")

    directory = Path(save_dir)
    if directory.is_absolute():
        return (directory / filename).resolve()

    if allowed_base is None:
        allowed_base = Path.cwd()

    allowed_base = allowed_base.resolve()
    resolved = (allowed_base / directory / filename).resolve()

    try:
        resolved.relative_to(allowed_base)
    except ValueError:
        raise ValueError(
            f"Save directory '{save_dir}' resolves outside the allowed directory "
            f"('{allowed_base}'). Path traversal is not permitted."
        )

    return resolved


# ------------------------------------------------------------------
# Overwrite guard
# ------------------------------------------------------------------


def check_overwrite(path: Path, yes: bool) -> bool:
    """Return True if we should proceed with writing, False if user declines."""
    if yes or not path.exists():
        return True

    return typer.confirm(f"  File exists: {path.name}\n  Overwrite?", default=False)


# ------------------------------------------------------------------
# Atomic write
# ------------------------------------------------------------------


def write_output(path: Path, data: bytes) -> None:
    """Write *data* to *path* atomically (temp → rename). Creates parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def save_document(
    document: GeneratedDocument, save_dir: str, yes: bool = False
) -> Path | None:
    """Validate, confirm and write *document*. Returns the path, or None if declined."""
    path = validate_output_path(save_dir, document.name)
    if not check_overwrite(path, yes):
        return None
    write_output(path, document.decode())
    return path
