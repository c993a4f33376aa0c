"""Tests for collection table management and vector serialisation."""

from __future__ import annotations

import pytest

from docrag.db.vectors import (
    CollectionMismatchError,
    deserialize_vector,
    ensure_collection,
    serialize_vector,
)


def test_serialize_is_float32_blob():
    blob = serialize_vector([0.5, -1.0, 2.0])
    assert isinstance(blob, bytes)
    assert len(blob) == 3 * 4
    assert deserialize_vector(blob) == [0.5, -1.0, 2.0]


def test_ensure_collection_creates_table_and_row(tmp_db):
    name = ensure_collection(tmp_db, "document_chunks", 384, "all-MiniLM-L6-v2")
    assert name == "document_chunks"
    cols = {r["name"] for r in tmp_db.execute("PRAGMA table_info(document_chunks)")}
    assert {"id", "document_id", "owner_id", "chunk_index", "text", "embedding"} <= cols
    row = tmp_db.execute("SELECT * FROM collections WHERE name = 'document_chunks'").fetchone()
    assert row["dimensions"] == 384
    assert row["embedding_model"] == "all-MiniLM-L6-v2"


def test_ensure_collection_idempotent(tmp_db):
    ensure_collection(tmp_db, "document_chunks", 384, "m")
    ensure_collection(tmp_db, "document_chunks", 384, "m")
    count = tmp_db.execute("SELECT COUNT(*) FROM collections").fetchone()[0]
    assert count == 1


def test_ensure_collection_dimension_mismatch(tmp_db):
    ensure_collection(tmp_db, "document_chunks", 384, "m")
    with pytest.raises(CollectionMismatchError, match="384-d"):
        ensure_collection(tmp_db, "document_chunks", 1536, "other")


@pytest.mark.parametrize("name", ["", "1chunks", "chunks; DROP TABLE collections", "a-b"])
def test_ensure_collection_rejects_non_identifiers(tmp_db, name):
    with pytest.raises(ValueError, match="Invalid collection name"):
        ensure_collection(tmp_db, name, 384, "m")


def test_ensure_collection_rejects_zero_dimensions(tmp_db):
    with pytest.raises(ValueError, match="dimensions"):
        ensure_collection(tmp_db, "document_chunks", 0, "m")
