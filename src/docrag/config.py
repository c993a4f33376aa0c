"""docrag configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (DOCRAG_GENERATION_MODEL, DOCRAG_EMBEDDING_MODEL,
                             DOCRAG_DB_PATH, DOCRAG_COLLECTION, DOCRAG_LOG_LEVEL)
  3. Per-project docrag.yaml  (current working directory)
  4. Global ~/.docrag/config.yaml  (model defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; provider keys such as GROQ_API_KEY
are read from the environment by LiteLLM.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from docrag.rag.ranker import DEFAULT_MIN_SCORE

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".docrag"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "docrag.yaml"

# Fields that suggest an API key; forbidden in global config.
# Does NOT match legitimate config keys like max_tokens or token_budget.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    [
        "embedding",
        "generation",
        "retrieval",
        "ingestion",
        "vector_store",
        "documents",
        "logging",
    ]
)

_EMBEDDING_BACKENDS: frozenset[str] = frozenset(["local", "litellm"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (docrag.yaml: embedding:).

    Attributes:
        backend: 'local' (sentence-transformers, in-process) or 'litellm'
            (hosted embedding model, provider/model format).
        model: Model identifier for the chosen backend.
        dimensions: Vector size produced by the model.
        device: Torch device for the local backend.
        cache_dir: Optional model cache directory for the local backend.
    """

    backend: str = "local"
    model: str = "sentence-transformers/all-MiniLM-L6-v2"
    dimensions: int = 384
    device: str = "cpu"
    cache_dir: str | None = None


@dataclass
class GenerationCfg:
    """LLM generation configuration (docrag.yaml: generation:)."""

    model: str = "groq/llama-3.3-70b-versatile"
    temperature: float = 0.7
    max_tokens: int = 2048
    num_retries: int = 0


@dataclass
class RetrievalCfg:
    """Retrieval configuration (docrag.yaml: retrieval:).

    Attributes:
        top_k: Maximum chunks placed into the context.
        min_score: Cosine similarity threshold for a chunk to be used.
        candidate_multiplier: Vector search fetches top_k × this many candidates
            before ranking.
        token_budget: Maximum tokens of retrieved chunk text in the context.
        fallback_to_document_chunks: When documents were selected explicitly and
            nothing ranks above the threshold, use their leading chunks instead.
        history_turns: Number of recent turns the CLI loads as conversation
            context for a session (0 disables).
    """

    top_k: int = 5
    min_score: float = DEFAULT_MIN_SCORE
    candidate_multiplier: int = 4
    token_budget: int = 1_500
    fallback_to_document_chunks: bool = True
    history_turns: int = 6


@dataclass
class IngestionCfg:
    """Document ingestion configuration (docrag.yaml: ingestion:)."""

    chunk_size: int = 1_000
    overlap: int = 200
    batch_size: int = 64
    concurrency: int = 3


@dataclass
class VectorStoreCfg:
    """Vector store configuration (docrag.yaml: vector_store:).

    Attributes:
        path: SQLite database file holding chunks, vectors and conversations.
        collection: Table name for the chunk collection.
    """

    path: str = ".docrag.db"
    collection: str = "document_chunks"


@dataclass
class DocumentsCfg:
    """Generated document configuration (docrag.yaml: documents:)."""

    enabled: bool = True
    filename: str = "ai-generated-document"


@dataclass
class LoggingCfg:
    """Logging configuration (docrag.yaml: logging:)."""

    level: str = "WARNING"
    file: str | None = None


@dataclass
class DocragConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    ingestion: IngestionCfg = field(default_factory=IngestionCfg)
    vector_store: VectorStoreCfg = field(default_factory=VectorStoreCfg)
    documents: DocumentsCfg = field(default_factory=DocumentsCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: DocragConfig) -> None:
    """Raise ConfigError for values the pipeline cannot run with."""
    if cfg.embedding.backend not in _EMBEDDING_BACKENDS:
        raise ConfigError(
            f"embedding.backend must be one of {sorted(_EMBEDDING_BACKENDS)}, "
            f"got '{cfg.embedding.backend}'"
        )
    if cfg.embedding.dimensions < 1:
        raise ConfigError(f"embedding.dimensions must be >= 1, got {cfg.embedding.dimensions}")
    if cfg.ingestion.chunk_size < 1:
        raise ConfigError(f"ingestion.chunk_size must be >= 1, got {cfg.ingestion.chunk_size}")
    if cfg.ingestion.overlap < 0:
        raise ConfigError(f"ingestion.overlap must be >= 0, got {cfg.ingestion.overlap}")
    if cfg.ingestion.batch_size < 1 or cfg.ingestion.concurrency < 1:
        raise ConfigError("ingestion.batch_size and ingestion.concurrency must be >= 1")
    if cfg.retrieval.top_k < 1 or cfg.retrieval.candidate_multiplier < 1:
        raise ConfigError("retrieval.top_k and retrieval.candidate_multiplier must be >= 1")
    if not -1.0 <= cfg.retrieval.min_score <= 1.0:
        raise ConfigError(f"retrieval.min_score must be in [-1, 1], got {cfg.retrieval.min_score}")
    if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", cfg.vector_store.collection):
        raise ConfigError(
            f"vector_store.collection must be a plain identifier, got '{cfg.vector_store.collection}'"
        )


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> DocragConfig:
    """Build a *DocragConfig* from a merged raw YAML dict."""
    cfg = DocragConfig()

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            backend=str(e.get("backend", cfg.embedding.backend)),
            model=str(e.get("model", cfg.embedding.model)),
            dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
            device=str(e.get("device", cfg.embedding.device)),
            cache_dir=e.get("cache_dir") or cfg.embedding.cache_dir,
        )

    if "generation" in data:
        g = data["generation"] or {}
        cfg.generation = GenerationCfg(
            model=str(g.get("model", cfg.generation.model)),
            temperature=float(g.get("temperature", cfg.generation.temperature)),
            max_tokens=int(g.get("max_tokens", cfg.generation.max_tokens)),
            num_retries=int(g.get("num_retries", cfg.generation.num_retries)),
        )

    if "retrieval" in data:
        r = data["retrieval"] or {}
        cfg.retrieval = RetrievalCfg(
            top_k=int(r.get("top_k", cfg.retrieval.top_k)),
            min_score=float(r.get("min_score", cfg.retrieval.min_score)),
            candidate_multiplier=int(
                r.get("candidate_multiplier", cfg.retrieval.candidate_multiplier)
            ),
            token_budget=int(r.get("token_budget", cfg.retrieval.token_budget)),
            fallback_to_document_chunks=bool(
                r.get("fallback_to_document_chunks", cfg.retrieval.fallback_to_document_chunks)
            ),
            history_turns=int(r.get("history_turns", cfg.retrieval.history_turns)),
        )

    if "ingestion" in data:
        i = data["ingestion"] or {}
        cfg.ingestion = IngestionCfg(
            chunk_size=int(i.get("chunk_size", cfg.ingestion.chunk_size)),
            overlap=int(i.get("overlap", cfg.ingestion.overlap)),
            batch_size=int(i.get("batch_size", cfg.ingestion.batch_size)),
            concurrency=int(i.get("concurrency", cfg.ingestion.concurrency)),
        )

    if "vector_store" in data:
        v = data["vector_store"] or {}
        cfg.vector_store = VectorStoreCfg(
            path=str(v.get("path", cfg.vector_store.path)),
            collection=str(v.get("collection", cfg.vector_store.collection)),
        )

    if "documents" in data:
        d = data["documents"] or {}
        cfg.documents = DocumentsCfg(
            enabled=bool(d.get("enabled", cfg.documents.enabled)),
            filename=str(d.get("filename", cfg.documents.filename)),
        )

    if "logging" in data:
        lg = data["logging"] or {}
        cfg.logging = LoggingCfg(
            level=str(lg.get("level", cfg.logging.level)),
            file=lg.get("file") or cfg.logging.file,
        )

    return cfg


def _apply_env_overrides(cfg: DocragConfig) -> DocragConfig:
    """Apply DOCRAG_* environment variable overrides."""
    if model := os.environ.get("DOCRAG_GENERATION_MODEL"):
        cfg.generation.model = model
    if model := os.environ.get("DOCRAG_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if path := os.environ.get("DOCRAG_DB_PATH"):
        cfg.vector_store.path = path
    if collection := os.environ.get("DOCRAG_COLLECTION"):
        cfg.vector_store.collection = collection
    if level := os.environ.get("DOCRAG_LOG_LEVEL"):
        cfg.logging.level = level
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> DocragConfig:
    """Load and return a merged *DocragConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *docrag.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged and validated *DocragConfig*.

    Raises:
        ConfigError: If global config contains API-key-like fields or a value
            is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    try:
        cfg = _cfg_from_dict(merged)
    except (AttributeError, TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc
    cfg = _apply_env_overrides(cfg)
    _validate(cfg)

    return cfg
