"""Domain models for the docrag database layer."""

from __future__ import annotations

from dataclasses import dataclass, field


def chunk_id(document_id: str, index: int) -> str:
    """Stable chunk id for a document position."""
    return f"{document_id}_chunk_{index}"


@dataclass
class Chunk:
    document_id: str
    owner_id: str
    chunk_index: int
    text: str
    embedding: list[float] | None = None
    id: str = ""
    inserted_at: str | None = None  # set by the database

    def __post_init__(self) -> None:
        if not self.id:
            self.id = chunk_id(self.document_id, self.chunk_index)


@dataclass
class SearchHit:
    """One row returned by an owner-scoped vector search."""

    chunk_id: str
    document_id: str
    text: str
    chunk_index: int
    score: float
    embedding: list[float] = field(default_factory=list)


@dataclass
class ConversationTurn:
    id: str
    session_id: str
    role: str  # user | assistant
    content: str
    referenced_docs: list[str] = field(default_factory=list)
    created_at: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "role": self.role,
            "content": self.content,
            "referencedDocs": list(self.referenced_docs),
            "createdAt": self.created_at,
        }


@dataclass
class CollectionStats:
    collection: str
    dimensions: int
    embedding_model: str
    chunk_count: int = 0
    document_count: int = 0
    owner_count: int = 0
