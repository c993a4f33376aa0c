"""Context assembler: conversation context + ranked chunk texts, within a token budget.

Pipeline:
  1. Apply token budget (optional): keep chunks in rank order until the next
     one would exceed ``token_budget`` tokens; the rest are dropped whole.
     The top-ranked chunk is always kept, truncated when it alone is over budget.
  2. Join the kept chunk texts with blank lines.
  3. Prepend the conversation context, which is never trimmed.
"""

from __future__ import annotations

import dataclasses
from typing import Sequence

from loguru import logger

from docrag.rag.llm_client import count_tokens
from docrag.rag.ranker import RankedChunk

_SEPARATOR = "\n\n"


def assemble(
    retrieved_chunks: Sequence[RankedChunk],
    conversation_context: str | None = None,
    token_budget: int | None = None,
    model: str = "groq/llama-3.3-70b-versatile",
) -> str:
    """Build the context string handed to the generator. ``""`` when there is nothing."""
    chunks = list(retrieved_chunks)
    if token_budget is not None:
        chunks = select_within_budget(chunks, model, token_budget)

    context = _SEPARATOR.join(c.text for c in chunks)
    if conversation_context and conversation_context.strip():
        return f"{conversation_context}{_SEPARATOR}{context}" if context else conversation_context
    return context


# ------------------------------------------------------------------
# Token budget
# ------------------------------------------------------------------


def select_within_budget(
    chunks: Sequence[RankedChunk], model: str, budget: int
) -> list[RankedChunk]:
    """Leading chunks whose combined token count fits within *budget*.

    When the first chunk alone exceeds *budget* it is cut down to fit rather
    than dropped. A non-positive budget keeps nothing.
    """
    if budget <= 0 or not chunks:
        return []

    selected: list[RankedChunk] = []
    total = 0
    for chunk in chunks:
        tokens = count_tokens(model, chunk.text)
        if total + tokens > budget:
            if not selected:
                selected.append(truncate_to_budget(chunk, model, budget, tokens))
            break
        selected.append(chunk)
        total += tokens
    return selected


def truncate_to_budget(
    chunk: RankedChunk, model: str, budget: int, tokens: int | None = None
) -> RankedChunk:
    """Prefix of *chunk* that counts at most *budget* tokens."""
    tokens = count_tokens(model, chunk.text) if tokens is None else tokens
    if tokens <= budget:
        return chunk

    text = chunk.text
    # Shrink proportionally until the tokenizer agrees; a few passes at most.
    while text and count_tokens(model, text) > budget:
        keep = max(1, len(text) * budget // max(count_tokens(model, text), 1))
        text = text[: min(keep, len(text) - 1)]

    logger.warning(
        f"Top chunk of '{chunk.document_id}' ({tokens} tokens) exceeds the "
        f"{budget}-token budget; truncated to {len(text)} chars"
    )
    return dataclasses.replace(chunk, text=text)
