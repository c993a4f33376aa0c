"""Process-wide service wiring built from a DocragConfig.

The embedder and vector store are created once per process and reused by
every query and ingestion; reset_services() drops them (tests).
"""

from __future__ import annotations

import threading
from pathlib import Path

from docrag.config import DocragConfig
from docrag.generate.materializer import DocumentMaterializer
from docrag.rag.embeddings import get_embedder, reset_embedder
from docrag.rag.generator import ResponseGenerator
from docrag.rag.history import ConversationStore
from docrag.rag.pipeline import RagPipeline
from docrag.rag.vector_store import VectorStore

_lock = threading.Lock()
_vector_stores: dict[tuple[str, str], VectorStore] = {}
_conversation_stores: dict[str, ConversationStore] = {}


def get_vector_store(cfg: DocragConfig) -> VectorStore:
    """Shared VectorStore for the configured database + collection."""
    key = (_db_key(cfg.vector_store.path), cfg.vector_store.collection)
    with _lock:
        if key not in _vector_stores:
            _vector_stores[key] = VectorStore(
                db_path=cfg.vector_store.path,
                collection=cfg.vector_store.collection,
                embedder=get_embedder(cfg.embedding),
                batch_size=cfg.ingestion.batch_size,
                concurrency=cfg.ingestion.concurrency,
            )
        return _vector_stores[key]


def get_conversation_store(cfg: DocragConfig) -> ConversationStore:
    """Shared ConversationStore for the configured database."""
    key = _db_key(cfg.vector_store.path)
    with _lock:
        if key not in _conversation_stores:
            _conversation_stores[key] = ConversationStore(cfg.vector_store.path)
        return _conversation_stores[key]


def build_pipeline(cfg: DocragConfig) -> RagPipeline:
    """Assemble a RagPipeline from shared services and *cfg*."""
    materializer = (
        DocumentMaterializer(filename=cfg.documents.filename) if cfg.documents.enabled else None
    )
    return RagPipeline(
        vector_store=get_vector_store(cfg),
        embedder=get_embedder(cfg.embedding),
        generator=ResponseGenerator(cfg.generation),
        materializer=materializer,
        conversations=get_conversation_store(cfg),
        retrieval=cfg.retrieval,
    )


def reset_services() -> None:
    """Close and drop every shared service."""
    with _lock:
        for store in _vector_stores.values():
            store.close()
        for conversations in _conversation_stores.values():
            conversations.close()
        _vector_stores.clear()
        _conversation_stores.clear()
    reset_embedder()


def _db_key(path: str) -> str:
    return path if path == ":memory:" else str(Path(path).resolve())
