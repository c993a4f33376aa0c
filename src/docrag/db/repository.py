"""Repository pattern for all docrag database operations.

Single interface for: owner-scoped chunk storage, cosine search, and
conversation turns. Collection tables are created by ensure_collection();
table names passed here must come from it. Every value (owner ids, document
ids, vectors) is bound as a parameter, never interpolated.
"""

from __future__ import annotations

import json
import sqlite3

from docrag.db.models import Chunk, CollectionStats, ConversationTurn, SearchHit
from docrag.db.vectors import deserialize_vector, serialize_vector


class Repository:
    """Data access layer for all docrag database entities.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use; callers sharing it across threads serialise
    access.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see docrag.db.schema.initialize).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def upsert_chunks(self, table: str, chunks: list[Chunk]) -> int:
        """Insert or replace *chunks* by id in one transaction. Returns rows written.

        A chunk id already owned by a different owner is left untouched, so a
        colliding document id can never overwrite another tenant's rows.

        Raises:
            ValueError: If a chunk has no embedding.
        """
        rows = []
        for chunk in chunks:
            if chunk.embedding is None:
                raise ValueError(f"Chunk '{chunk.id}' has no embedding")
            rows.append(
                (
                    chunk.id,
                    chunk.document_id,
                    chunk.owner_id,
                    chunk.chunk_index,
                    chunk.text,
                    serialize_vector(chunk.embedding),
                )
            )
        if not rows:
            return 0

        before = self._conn.total_changes
        with self._conn:
            self._conn.executemany(
                f"""
                INSERT INTO {table} (id, document_id, owner_id, chunk_index, text, embedding)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    document_id = excluded.document_id,
                    chunk_index = excluded.chunk_index,
                    text        = excluded.text,
                    embedding   = excluded.embedding
                WHERE {table}.owner_id = excluded.owner_id
                """,
                rows,
            )
        return self._conn.total_changes - before

    def search_chunks(
        self,
        table: str,
        embedding: list[float],
        owner_id: str,
        limit: int = 10,
        document_ids: list[str] | None = None,
    ) -> list[SearchHit]:
        """Exact cosine search over *owner_id*'s chunks, best-first.

        score = 1 - cosine distance. Ties keep insertion order.

        Args:
            table: Collection table.
            embedding: Query vector.
            owner_id: Hard tenant filter.
            limit: Maximum rows returned.
            document_ids: Optional allowlist; ``None`` or empty means all of
                the owner's documents.
        """
        sql = (
            f"SELECT id, document_id, text, chunk_index, embedding, "
            f"1.0 - vec_distance_cosine(embedding, ?) AS score "
            f"FROM {table} WHERE owner_id = ?"
        )
        params: list[object] = [serialize_vector(embedding), owner_id]
        if document_ids:
            placeholders = ",".join("?" * len(document_ids))
            sql += f" AND document_id IN ({placeholders})"
            params.extend(document_ids)
        sql += " ORDER BY score DESC, rowid ASC LIMIT ?"
        params.append(limit)

        return [_row_to_hit(row) for row in self._conn.execute(sql, params).fetchall()]

    def fetch_document_chunks(
        self, table: str, document_id: str, owner_id: str, limit: int = 10
    ) -> list[SearchHit]:
        """Return the leading chunks of one document (by index) with score 0."""
        rows = self._conn.execute(
            f"""
            SELECT id, document_id, text, chunk_index, embedding, 0.0 AS score
            FROM {table}
            WHERE document_id = ? AND owner_id = ?
            ORDER BY chunk_index
            LIMIT ?
            """,
            (document_id, owner_id, limit),
        ).fetchall()
        return [_row_to_hit(row) for row in rows]

    def count_chunks(self, table: str, owner_id: str, document_id: str | None = None) -> int:
        """Return the number of chunks for *owner_id* (optionally one document)."""
        if document_id is None:
            return self._conn.execute(
                f"SELECT COUNT(*) FROM {table} WHERE owner_id = ?", (owner_id,)
            ).fetchone()[0]
        return self._conn.execute(
            f"SELECT COUNT(*) FROM {table} WHERE owner_id = ? AND document_id = ?",
            (owner_id, document_id),
        ).fetchone()[0]

    def delete_chunks_by_document(self, table: str, document_id: str, owner_id: str) -> int:
        """Delete every chunk of *document_id* owned by *owner_id*. Returns rows deleted."""
        with self._conn:
            cur = self._conn.execute(
                f"DELETE FROM {table} WHERE document_id = ? AND owner_id = ?",
                (document_id, owner_id),
            )
        return cur.rowcount

    def prune_document_chunks(
        self, table: str, document_id: str, owner_id: str, keep: int
    ) -> int:
        """Delete chunks of *document_id* with chunk_index >= *keep*. Returns rows deleted."""
        with self._conn:
            cur = self._conn.execute(
                f"DELETE FROM {table} WHERE document_id = ? AND owner_id = ? AND chunk_index >= ?",
                (document_id, owner_id, keep),
            )
        return cur.rowcount

    def delete_chunks_by_owner(self, table: str, owner_id: str) -> int:
        """Delete every chunk owned by *owner_id*. Returns rows deleted."""
        with self._conn:
            cur = self._conn.execute(f"DELETE FROM {table} WHERE owner_id = ?", (owner_id,))
        return cur.rowcount

    def collection_stats(self, table: str) -> CollectionStats:
        """Return size statistics for a collection created by ensure_collection()."""
        meta = self._conn.execute(
            "SELECT dimensions, embedding_model FROM collections WHERE name = ?", (table,)
        ).fetchone()
        counts = self._conn.execute(
            f"""
            SELECT COUNT(*) AS chunks,
                   COUNT(DISTINCT owner_id || char(0) || document_id) AS documents,
                   COUNT(DISTINCT owner_id) AS owners
            FROM {table}
            """
        ).fetchone()
        return CollectionStats(
            collection=table,
            dimensions=meta["dimensions"] if meta else 0,
            embedding_model=meta["embedding_model"] if meta else "",
            chunk_count=counts["chunks"],
            document_count=counts["documents"],
            owner_count=counts["owners"],
        )

    # ------------------------------------------------------------------
    # Conversation turns
    # ------------------------------------------------------------------

    def add_turns(self, turns: list[ConversationTurn]) -> None:
        """Insert *turns* in a single transaction (all or nothing)."""
        with self._conn:
            self._conn.executemany(
                """
                INSERT INTO chat_messages (id, session_id, role, content, referenced_docs)
                VALUES (?, ?, ?, ?, ?)
                """,
                [
                    (t.id, t.session_id, t.role, t.content, json.dumps(t.referenced_docs))
                    for t in turns
                ],
            )

    def list_turns(self, session_id: str, limit: int | None = None) -> list[ConversationTurn]:
        """Return turns of *session_id* oldest first; with *limit*, only the latest N."""
        sql = (
            "SELECT rowid, id, session_id, role, content, referenced_docs, created_at "
            "FROM chat_messages WHERE session_id = ? ORDER BY created_at DESC, rowid DESC"
        )
        params: list[object] = [session_id]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        rows = self._conn.execute(sql, params).fetchall()
        return [_row_to_turn(r) for r in reversed(rows)]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

def _row_to_hit(row: sqlite3.Row) -> SearchHit:
    return SearchHit(
        chunk_id=row["id"],
        document_id=row["document_id"],
        text=row["text"],
        chunk_index=row["chunk_index"],
        score=float(row["score"]),
        embedding=deserialize_vector(row["embedding"]),
    )


def _row_to_turn(row: sqlite3.Row) -> ConversationTurn:
    return ConversationTurn(
        id=row["id"],
        session_id=row["session_id"],
        role=row["role"],
        content=row["content"],
        referenced_docs=json.loads(row["referenced_docs"]),
        created_at=row["created_at"],
    )
