"""Sentence-first text chunker with word overlap.

Sentences are packed into a buffer until the next one would push it past
``max_chunk_size`` characters. On flush, the next buffer is seeded with the
last ``overlap`` words of the flushed chunk, trimmed from the front until the
seed is at most a fifth of ``max_chunk_size`` and seed + next sentence fits.
Chunks never exceed ``max_chunk_size``.
"""

from __future__ import annotations

import re

from docrag.db.models import Chunk

# Sentence end (. ! ?) followed by whitespace, or a blank line.
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+|\n\s*\n")

# Overlap seeds never take more than 1/_SEED_FRACTION of a chunk.
_SEED_FRACTION = 5


def split_sentences(text: str) -> list[str]:
    """Split *text* into stripped, non-empty sentences."""
    return [s.strip() for s in _SENTENCE_SPLIT_RE.split(text) if s and s.strip()]


def chunk_text(text: str, max_chunk_size: int = 1_000, overlap: int = 200) -> list[str]:
    """Split *text* into overlapping chunks of at most *max_chunk_size* characters.

    Args:
        text: Document text.
        max_chunk_size: Hard upper bound on chunk length, in characters.
        overlap: Number of trailing words carried into the next chunk.

    Returns:
        Ordered chunk strings; ``[]`` for empty or whitespace-only input.

    Raises:
        ValueError: If *max_chunk_size* < 1 or *overlap* < 0.
    """
    if max_chunk_size < 1:
        raise ValueError("max_chunk_size must be >= 1")
    if overlap < 0:
        raise ValueError("overlap must be >= 0")
    if not text or not text.strip():
        return []

    chunks: list[str] = []
    buffer = ""

    for sentence in split_sentences(text):
        units = (
            [sentence]
            if len(sentence) <= max_chunk_size
            else _split_oversized(sentence, max_chunk_size)
        )
        for unit in units:
            candidate = _join(buffer, unit)
            if len(candidate) <= max_chunk_size:
                buffer = candidate
                continue
            # buffer is non-empty here: unit alone always fits
            chunks.append(buffer)
            budget = min(max_chunk_size // _SEED_FRACTION, max_chunk_size - len(unit) - 1)
            seed = _overlap_seed(buffer, overlap, budget)
            buffer = _join(seed, unit)

    if buffer:
        chunks.append(buffer)
    return chunks


class SentenceChunker:
    """Chunk a document's text into ``Chunk`` rows owned by one user.

    Default: 1000 characters / 200 words of overlap.
    """

    def __init__(self, chunk_size: int = 1_000, overlap: int = 200) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if overlap < 0:
            raise ValueError("overlap must be >= 0")
        self.chunk_size = chunk_size
        self.overlap = overlap

    def chunk(self, document_id: str, owner_id: str, text: str) -> list[Chunk]:
        """Return sequentially indexed Chunks for *document_id*."""
        return [
            Chunk(document_id=document_id, owner_id=owner_id, chunk_index=i, text=t)
            for i, t in enumerate(chunk_text(text, self.chunk_size, self.overlap))
        ]


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _join(head: str, tail: str) -> str:
    return f"{head} {tail}" if head else tail


def _overlap_seed(chunk: str, overlap: int, budget: int) -> str:
    """Last *overlap* words of *chunk*, dropping leading words until within *budget* chars."""
    if overlap == 0 or budget <= 0:
        return ""
    words = chunk.split()[-overlap:]
    while words and len(" ".join(words)) > budget:
        words.pop(0)
    return " ".join(words)


def _split_oversized(sentence: str, max_chunk_size: int) -> list[str]:
    """Pack the words of an over-long sentence into pieces of at most *max_chunk_size*.

    A single word longer than the limit is sliced by characters.
    """
    pieces: list[str] = []
    current = ""
    for word in sentence.split():
        if len(word) > max_chunk_size:
            if current:
                pieces.append(current)
                current = ""
            pieces.extend(
                word[i : i + max_chunk_size] for i in range(0, len(word), max_chunk_size)
            )
            continue
        candidate = _join(current, word)
        if len(candidate) <= max_chunk_size:
            current = candidate
        else:
            pieces.append(current)
            current = word
    if current:
        pieces.append(current)
    return pieces
