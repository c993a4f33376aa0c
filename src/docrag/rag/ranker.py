"""Cosine similarity ranking of vector-search candidates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from docrag.db.models import SearchHit

DEFAULT_MIN_SCORE = 0.3


@dataclass
class RankedChunk:
    """A chunk selected for the context, with its similarity to the query."""

    text: str
    document_id: str
    score: float
    chunk_id: str = ""
    chunk_index: int = 0


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """dot(a, b) / (|a| * |b|); 0.0 if either vector is all zeros.

    Raises:
        ValueError: If the vectors differ in length.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Vector length mismatch: {va.shape[0]} != {vb.shape[0]}")
    na = np.linalg.norm(va)
    nb = np.linalg.norm(vb)
    if na == 0.0 or nb == 0.0:
        return 0.0
    return float(np.dot(va, vb) / (na * nb))


def rank(
    query_vector: Sequence[float],
    candidates: Sequence[SearchHit],
    top_k: int,
    min_threshold: float = DEFAULT_MIN_SCORE,
) -> list[RankedChunk]:
    """Score *candidates* against *query_vector*, keep score >= threshold, best-first.

    Candidates without a stored embedding keep the score the store assigned.
    Ties keep input order. At most *top_k* items are returned.
    """
    if top_k <= 0:
        return []

    ranked: list[RankedChunk] = []
    for hit in candidates:
        score = cosine_similarity(query_vector, hit.embedding) if hit.embedding else hit.score
        if score >= min_threshold:
            ranked.append(
                RankedChunk(
                    text=hit.text,
                    document_id=hit.document_id,
                    score=score,
                    chunk_id=hit.chunk_id,
                    chunk_index=hit.chunk_index,
                )
            )

    ranked.sort(key=lambda r: r.score, reverse=True)
    return ranked[:top_k]


def referenced_documents(chunks: Sequence[RankedChunk]) -> list[str]:
    """Distinct document ids in first-seen rank order."""
    return list(dict.fromkeys(c.document_id for c in chunks))
