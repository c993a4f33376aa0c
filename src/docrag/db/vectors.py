"""Per-collection chunk table management and vector (de)serialisation."""

from __future__ import annotations

import re
import sqlite3

import numpy as np
import sqlite_vec

_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


class CollectionMismatchError(ValueError):
    """Raised when an existing collection was built with a different dimension."""


def serialize_vector(vector: list[float]) -> bytes:
    """Pack *vector* as little-endian float32, the format sqlite-vec reads."""
    return sqlite_vec.serialize_float32(vector)


def deserialize_vector(blob: bytes) -> list[float]:
    """Inverse of serialize_vector()."""
    return np.frombuffer(blob, dtype=np.float32).astype(float).tolist()


def ensure_collection(
    conn: sqlite3.Connection,
    name: str,
    dimensions: int,
    embedding_model: str,
) -> str:
    """Create the chunk table for collection *name* if it doesn't already exist.

    Args:
        conn: Active database connection (sqlite-vec must be loaded, schema
            initialised).
        name: Collection / table name; must be a plain SQL identifier.
        dimensions: Embedding vector dimensions (e.g. 384 for all-MiniLM-L6-v2).
        embedding_model: Model id recorded alongside the collection.

    Returns:
        The table name.

    Raises:
        ValueError: If *name* is not a plain identifier or *dimensions* < 1.
        CollectionMismatchError: If the collection exists with other dimensions.
    """
    if not _IDENTIFIER_RE.fullmatch(name):
        raise ValueError(f"Invalid collection name '{name}': use letters, digits and '_'.")
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    row = conn.execute(
        "SELECT dimensions, embedding_model FROM collections WHERE name = ?", (name,)
    ).fetchone()
    if row is not None and row["dimensions"] != dimensions:
        raise CollectionMismatchError(
            f"Collection '{name}' stores {row['dimensions']}-d vectors "
            f"({row['embedding_model']}), but the embedder produces {dimensions}-d vectors."
        )

    conn.execute(
        f"""
        CREATE TABLE IF NOT EXISTS {name} (
            id          TEXT PRIMARY KEY,
            document_id TEXT NOT NULL,
            owner_id    TEXT NOT NULL,
            chunk_index INTEGER NOT NULL,
            text        TEXT NOT NULL,
            embedding   BLOB NOT NULL,
            inserted_at DATETIME NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
        )
        """
    )
    conn.execute(
        f"CREATE INDEX IF NOT EXISTS idx_{name}_owner_doc "
        f"ON {name} (owner_id, document_id, chunk_index)"
    )
    if row is None:
        conn.execute(
            "INSERT INTO collections (name, dimensions, embedding_model) VALUES (?, ?, ?)",
            (name, dimensions, embedding_model),
        )
    conn.commit()
    return name
