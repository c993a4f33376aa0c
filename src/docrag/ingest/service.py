"""Document ingestion entrypoints: chunk, embed and store; delete."""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from docrag.errors import EmptyInputError
from docrag.ingest.chunker import SentenceChunker
from docrag.rag.vector_store import VectorStore


@dataclass
class IngestResult:
    """Outcome of ingesting one document.

    Attributes:
        document_id: The ingested document.
        chunks_count: Chunks produced from the text.
        written: Chunk rows inserted or replaced.
        pruned: Stale chunks removed from a previous, longer version.
    """

    document_id: str
    chunks_count: int
    written: int = 0
    pruned: int = 0

    @property
    def skipped(self) -> int:
        """Chunks not written because their id belongs to another owner."""
        return self.chunks_count - self.written


async def ingest_document(
    store: VectorStore,
    document_id: str,
    text: str,
    owner_id: str,
    chunk_size: int = 1_000,
    overlap: int = 200,
) -> IngestResult:
    """Chunk *text*, embed every chunk and upsert it under *owner_id*.

    Re-ingesting a document replaces its chunks; chunks past the new end are
    removed.

    Raises:
        EmptyInputError: If *text* is empty or whitespace.
        EmbeddingUnavailableError: If the embedder fails.
        VectorStoreUnavailableError: If the store is degraded or a write fails.
    """
    if not text or not text.strip():
        raise EmptyInputError(f"Document '{document_id}' has no text to ingest")

    chunks = SentenceChunker(chunk_size=chunk_size, overlap=overlap).chunk(
        document_id, owner_id, text
    )
    written = await store.upsert_chunks(chunks, owner_id)
    pruned = await store.prune_document(document_id, owner_id, keep=len(chunks))

    result = IngestResult(
        document_id=document_id, chunks_count=len(chunks), written=written, pruned=pruned
    )
    if result.skipped:
        logger.warning(
            f"{result.skipped} chunk(s) of '{document_id}' were not written: "
            f"the id is already used by another owner"
        )
    logger.info(
        f"Ingested '{document_id}' for owner {owner_id}: {len(chunks)} chunks "
        f"({written} written, {pruned} stale removed)"
    )
    return result


async def delete_document(store: VectorStore, document_id: str, owner_id: str) -> int:
    """Remove every chunk of *document_id* owned by *owner_id*. Returns rows deleted."""
    deleted = await store.delete_by_document(document_id, owner_id)
    logger.info(f"Deleted {deleted} chunks of '{document_id}' for owner {owner_id}")
    return deleted


async def delete_owner_data(store: VectorStore, owner_id: str) -> int:
    """Remove every chunk owned by *owner_id*. Returns rows deleted."""
    deleted = await store.delete_by_owner(owner_id)
    logger.info(f"Deleted {deleted} chunks for owner {owner_id}")
    return deleted
