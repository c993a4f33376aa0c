"""Owner-scoped vector store over SQLite + sqlite-vec.

One connection (check_same_thread=False) guarded by a lock; every database
call runs in a worker thread via asyncio.to_thread.

Availability:
  - ensure_ready() opens the database once (single-flight). On failure the
    store is marked degraded and a warning is logged; the next call retries.
  - Reads on a degraded store return empty results.
  - Writes on a degraded store raise VectorStoreUnavailableError.
  - sqlite errors at runtime surface as VectorStoreUnavailableError.
"""

from __future__ import annotations

import asyncio
import dataclasses
import sqlite3
import threading
from pathlib import Path
from typing import Any, Callable

from loguru import logger

from docrag.db.connection import Database
from docrag.db.models import Chunk, CollectionStats, SearchHit
from docrag.db.repository import Repository
from docrag.db.schema import initialize
from docrag.db.vectors import ensure_collection
from docrag.errors import VectorStoreUnavailableError
from docrag.rag.embeddings import Embedder


class VectorStore:
    """Async facade for chunk storage and cosine search in one collection.

    Args:
        db_path: SQLite file (``":memory:"`` for tests).
        collection: Chunk table name.
        embedder: Used to fill in missing chunk embeddings on upsert; its
            dimension and model id are recorded with the collection.
        batch_size: Chunks per upsert batch (batches run sequentially).
        concurrency: Maximum concurrent embed calls within a batch.
    """

    def __init__(
        self,
        db_path: Path | str,
        collection: str,
        embedder: Embedder,
        batch_size: int = 64,
        concurrency: int = 3,
    ) -> None:
        self._db_path = db_path
        self._collection = collection
        self._embedder = embedder
        self._batch_size = batch_size
        self._concurrency = concurrency
        self._conn: sqlite3.Connection | None = None
        self._repo: Repository | None = None
        self._degraded_reason: str | None = None
        self._init_lock = threading.Lock()
        self._lock = threading.Lock()

    @property
    def collection(self) -> str:
        return self._collection

    @property
    def degraded(self) -> bool:
        return self._repo is None and self._degraded_reason is not None

    @property
    def degraded_reason(self) -> str | None:
        return self._degraded_reason

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def ensure_ready(self) -> bool:
        """Open the database and collection if needed. Returns False when degraded."""
        return await asyncio.to_thread(self._ensure_ready_sync)

    def _ensure_ready_sync(self) -> bool:
        with self._init_lock:
            if self._repo is not None:
                return True
            conn: sqlite3.Connection | None = None
            try:
                conn = Database(self._db_path).connect()
                initialize(conn)
                ensure_collection(
                    conn,
                    self._collection,
                    self._embedder.dimension,
                    self._embedder.model_id,
                )
            except (sqlite3.Error, OSError, ValueError, AttributeError) as exc:
                if conn is not None:
                    conn.close()
                self._degraded_reason = str(exc)
                logger.warning(
                    f"Vector store '{self._collection}' unavailable, running degraded: {exc}"
                )
                return False
            self._conn = conn
            self._repo = Repository(conn)
            self._degraded_reason = None
            logger.debug(f"Vector store ready | db={self._db_path} | collection={self._collection}")
            return True

    def close(self) -> None:
        """Close the underlying connection. A later call re-opens it."""
        with self._init_lock, self._lock:
            if self._conn is not None:
                self._conn.close()
            self._conn = None
            self._repo = None

    async def health(self) -> bool:
        """True if the database answers a trivial query."""
        if not await self.ensure_ready():
            return False
        try:
            await self._run(lambda repo: repo._conn.execute("SELECT 1").fetchone())
        except VectorStoreUnavailableError:
            return False
        return True

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert_chunks(self, chunks: list[Chunk], owner_id: str) -> int:
        """Embed (where missing) and store *chunks* for *owner_id*. Returns rows written.

        Idempotent by chunk id. A chunk id owned by another owner is skipped.

        Raises:
            VectorStoreUnavailableError: If the store is degraded or a write fails.
            EmbeddingUnavailableError: If embedding a chunk fails.
        """
        await self._require_ready()
        semaphore = asyncio.Semaphore(self._concurrency)

        async def _embed(chunk: Chunk) -> list[float]:
            if chunk.embedding is not None:
                return chunk.embedding
            async with semaphore:
                return await self._embedder.embed(chunk.text)

        written = 0
        for start in range(0, len(chunks), self._batch_size):
            batch = chunks[start : start + self._batch_size]
            embeddings = await asyncio.gather(*(_embed(c) for c in batch))
            rows = [
                dataclasses.replace(chunk, owner_id=owner_id, embedding=vector)
                for chunk, vector in zip(batch, embeddings)
            ]
            written += await self._run(lambda repo: repo.upsert_chunks(self._collection, rows))
            logger.debug(
                f"Upserted batch {start // self._batch_size + 1} "
                f"({len(rows)} chunks) into '{self._collection}'"
            )
        return written

    async def delete_by_document(self, document_id: str, owner_id: str) -> int:
        """Delete every chunk of *document_id* owned by *owner_id*. Returns rows deleted."""
        await self._require_ready()
        return await self._run(
            lambda repo: repo.delete_chunks_by_document(self._collection, document_id, owner_id)
        )

    async def delete_by_owner(self, owner_id: str) -> int:
        """Delete every chunk owned by *owner_id*. Returns rows deleted."""
        await self._require_ready()
        return await self._run(lambda repo: repo.delete_chunks_by_owner(self._collection, owner_id))

    async def prune_document(self, document_id: str, owner_id: str, keep: int) -> int:
        """Delete chunks of *document_id* at index >= *keep* (left over from a longer version)."""
        await self._require_ready()
        return await self._run(
            lambda repo: repo.prune_document_chunks(self._collection, document_id, owner_id, keep)
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def search(
        self,
        query_vector: list[float],
        owner_id: str,
        top_k: int,
        document_ids: list[str] | None = None,
    ) -> list[SearchHit]:
        """Nearest chunks of *owner_id* to *query_vector*, best-first. ``[]`` when degraded."""
        if top_k <= 0:
            return []
        if not await self.ensure_ready():
            return []
        return await self._run(
            lambda repo: repo.search_chunks(
                self._collection, query_vector, owner_id, top_k, document_ids
            )
        )

    async def fetch_document_chunks(
        self, document_id: str, owner_id: str, limit: int = 5
    ) -> list[SearchHit]:
        """Leading chunks of one document by index. ``[]`` when degraded."""
        if not await self.ensure_ready():
            return []
        return await self._run(
            lambda repo: repo.fetch_document_chunks(self._collection, document_id, owner_id, limit)
        )

    async def stats(self) -> CollectionStats:
        """Collection size statistics.

        Raises:
            VectorStoreUnavailableError: If the store is degraded.
        """
        await self._require_ready()
        return await self._run(lambda repo: repo.collection_stats(self._collection))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _require_ready(self) -> None:
        if not await self.ensure_ready():
            raise VectorStoreUnavailableError(
                f"Vector store '{self._collection}' is unavailable: {self._degraded_reason}"
            )

    async def _run(self, op: Callable[[Repository], Any]) -> Any:
        return await asyncio.to_thread(self._call, op)

    def _call(self, op: Callable[[Repository], Any]) -> Any:
        with self._lock:
            if self._repo is None:
                raise VectorStoreUnavailableError(f"Vector store '{self._collection}' is closed")
            try:
                return op(self._repo)
            except sqlite3.Error as exc:
                raise VectorStoreUnavailableError(
                    f"Vector store operation on '{self._collection}' failed: {exc}"
                ) from exc
