"""Shared pytest fixtures."""

from __future__ import annotations

import hashlib
import re

import pytest
from loguru import logger

from docrag.db.connection import Database
from docrag.db.schema import initialize
from docrag.rag.embeddings import Embedder, normalize
from docrag.rag.vector_store import VectorStore

_WORD_RE = re.compile(r"[a-z0-9]+")


class FakeEmbedder(Embedder):
    """Deterministic bag-of-words hash embedder: shared words → higher cosine."""

    def __init__(self, dimensions: int = 384) -> None:
        super().__init__("hash-bow-test", dimensions)
        self.calls = 0
        self.texts: list[str] = []

    def vector(self, text: str) -> list[float]:
        vec = [0.0] * self.dimension
        for word in _WORD_RE.findall(text.lower()):
            digest = hashlib.sha256(word.encode("utf-8")).digest()
            vec[int.from_bytes(digest[:4], "big") % self.dimension] += 1.0
        return normalize([vec])[0]

    async def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.calls += 1
        self.texts.extend(texts)
        return [self.vector(t) for t in texts]


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".docrag.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def store(tmp_path, fake_embedder):
    """VectorStore on a temporary database using the fake embedder."""
    vs = VectorStore(tmp_path / "store.db", "document_chunks", fake_embedder, batch_size=4)
    yield vs
    vs.close()


@pytest.fixture
def log_messages():
    """Collect loguru messages emitted during the test."""
    messages: list[str] = []
    sink_id = logger.add(lambda m: messages.append(str(m)), level="DEBUG", format="{level} {message}")
    yield messages
    logger.remove(sink_id)


@pytest.fixture(autouse=True)
def _approximate_token_count(monkeypatch):
    """Keep token budgeting offline: 4 chars ≈ 1 token."""
    monkeypatch.setattr(
        "docrag.rag.assembler.count_tokens", lambda model, text: max(1, len(text) // 4)
    )


@pytest.fixture
def embedder_factory():
    """Build extra FakeEmbedders, e.g. with other dimensions."""
    return FakeEmbedder
