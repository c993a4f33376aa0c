"""Text → dense vector embedders.

Two backends:
  local    sentence-transformers model in-process (all-MiniLM-L6-v2 by default,
           mean pooling + L2 normalisation, 384 dimensions)
  litellm  hosted embedding model via LiteLLM, normalised client-side

The local model is loaded on first use, at most once per process even under
concurrent first calls, and kept for the process lifetime. A failed load is
not cached: the next call retries.
"""

from __future__ import annotations

import asyncio
import threading
from abc import ABC, abstractmethod
from typing import Sequence

import numpy as np
from loguru import logger

from docrag.config import EmbeddingCfg
from docrag.errors import EmbeddingUnavailableError, EmptyInputError
from docrag.rag import llm_client


class Embedder(ABC):
    """Abstract embedder. Subclasses implement ``_embed_batch()``."""

    def __init__(self, model: str, dimensions: int) -> None:
        self._model_id = model
        self._dimension = dimensions

    @property
    def model_id(self) -> str:
        return self._model_id

    @property
    def dimension(self) -> int:
        return self._dimension

    async def embed(self, text: str) -> list[float]:
        """Embed one text.

        Raises:
            EmptyInputError: If *text* is empty or whitespace.
            EmbeddingUnavailableError: If the backend cannot load or respond.
        """
        _check_text(text)
        vectors = await self._embed_batch([text])
        return vectors[0]

    async def embed_many(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed several texts in one backend call. Order is preserved."""
        for text in texts:
            _check_text(text)
        if not texts:
            return []
        return await self._embed_batch(list(texts))

    @abstractmethod
    async def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Return one normalised vector per text."""


class LocalEmbedder(Embedder):
    """sentence-transformers model run in a worker thread."""

    def __init__(
        self,
        model: str = "sentence-transformers/all-MiniLM-L6-v2",
        dimensions: int = 384,
        device: str = "cpu",
        cache_dir: str | None = None,
    ) -> None:
        super().__init__(model, dimensions)
        self._device = device
        self._cache_dir = cache_dir
        self._model = None
        self._load_lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._model is not None

    def _load(self):
        with self._load_lock:
            if self._model is not None:
                return self._model
            logger.info(f"Loading embedding model {self._model_id} on {self._device}")
            try:
                from sentence_transformers import SentenceTransformer

                model = SentenceTransformer(
                    self._model_id, device=self._device, cache_folder=self._cache_dir
                )
            except Exception as exc:
                raise EmbeddingUnavailableError(
                    f"Could not load embedding model '{self._model_id}': {exc}"
                ) from exc
            actual = int(model.get_sentence_embedding_dimension())
            if actual != self._dimension:
                raise EmbeddingUnavailableError(
                    f"Embedding model '{self._model_id}' produces {actual}-d vectors, "
                    f"configured embedding.dimensions is {self._dimension}."
                )
            self._model = model
            return model

    def _encode(self, texts: list[str]) -> list[list[float]]:
        model = self._load()
        try:
            vectors = model.encode(
                texts,
                normalize_embeddings=True,
                show_progress_bar=False,
                convert_to_numpy=True,
            )
        except Exception as exc:
            raise EmbeddingUnavailableError(f"Embedding inference failed: {exc}") from exc
        return np.asarray(vectors, dtype=np.float32).astype(float).tolist()

    async def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        return await asyncio.to_thread(self._encode, texts)


class LiteLLMEmbedder(Embedder):
    """Hosted embedding model through LiteLLM (provider/model format)."""

    def __init__(self, model: str, dimensions: int, num_retries: int = 0) -> None:
        super().__init__(model, dimensions)
        self._num_retries = num_retries

    async def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        try:
            vectors = await llm_client.embed_texts(
                self._model_id, texts, num_retries=self._num_retries
            )
        except Exception as exc:
            raise EmbeddingUnavailableError(
                f"Embedding request to '{self._model_id}' failed: {exc}"
            ) from exc
        if any(len(v) != self._dimension for v in vectors):
            raise EmbeddingUnavailableError(
                f"Embedding model '{self._model_id}' returned vectors that are not "
                f"{self._dimension}-d; check embedding.dimensions."
            )
        return normalize(vectors)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def normalize(vectors: list[list[float]]) -> list[list[float]]:
    """L2-normalise each row; zero rows are returned unchanged."""
    arr = np.asarray(vectors, dtype=np.float64)
    norms = np.linalg.norm(arr, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return (arr / norms).tolist()


def _check_text(text: str) -> None:
    if not text or not text.strip():
        raise EmptyInputError("Cannot embed empty text")


# ------------------------------------------------------------------
# Process-wide instance
# ------------------------------------------------------------------

_embedder: Embedder | None = None
_embedder_lock = threading.Lock()


def build_embedder(cfg: EmbeddingCfg) -> Embedder:
    """Construct (without loading) the embedder selected by *cfg.backend*."""
    if cfg.backend == "litellm":
        return LiteLLMEmbedder(cfg.model, cfg.dimensions)
    return LocalEmbedder(
        model=cfg.model,
        dimensions=cfg.dimensions,
        device=cfg.device,
        cache_dir=cfg.cache_dir,
    )


def get_embedder(cfg: EmbeddingCfg) -> Embedder:
    """Return the process-wide embedder, creating it on first call."""
    global _embedder
    with _embedder_lock:
        if _embedder is None:
            _embedder = build_embedder(cfg)
        return _embedder


def reset_embedder() -> None:
    """Drop the process-wide embedder (test isolation)."""
    global _embedder
    with _embedder_lock:
        _embedder = None
