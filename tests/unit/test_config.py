"""Tests for docrag config loader."""

from __future__ import annotations

import warnings
from pathlib import Path

import pytest
import yaml

from docrag.config import ConfigError, DocragConfig, RetrievalCfg, load_config
from docrag.rag.ranker import DEFAULT_MIN_SCORE


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data), encoding="utf-8")


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    for var in (
        "DOCRAG_GENERATION_MODEL",
        "DOCRAG_EMBEDDING_MODEL",
        "DOCRAG_DB_PATH",
        "DOCRAG_COLLECTION",
        "DOCRAG_LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)


def _load(tmp_path: Path, global_path: Path | None = None) -> DocragConfig:
    return load_config(
        project_dir=tmp_path,
        global_config_path=global_path or tmp_path / "nonexistent" / "config.yaml",
    )


# ---------------------------------------------------------------------------
# Defaults — no config files present
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path) -> None:
    cfg = _load(tmp_path)

    assert cfg.embedding.backend == "local"
    assert cfg.embedding.model == "sentence-transformers/all-MiniLM-L6-v2"
    assert cfg.embedding.dimensions == 384
    assert cfg.generation.model == "groq/llama-3.3-70b-versatile"
    assert cfg.generation.temperature == 0.7
    assert cfg.generation.num_retries == 0
    assert cfg.retrieval.top_k == 5
    assert cfg.retrieval.min_score == 0.3
    assert cfg.ingestion.chunk_size == 1_000
    assert cfg.ingestion.overlap == 200
    assert cfg.vector_store.collection == "document_chunks"
    assert cfg.documents.filename == "ai-generated-document"


def test_retrieval_threshold_default_matches_ranker() -> None:
    assert RetrievalCfg().min_score == DEFAULT_MIN_SCORE


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


def test_global_overrides_defaults(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"generation": {"model": "openai/gpt-4o-mini"}})

    cfg = _load(tmp_path, global_cfg)
    assert cfg.generation.model == "openai/gpt-4o-mini"
    assert cfg.generation.temperature == 0.7


def test_project_overrides_global(tmp_path: Path) -> None:
    global_cfg = tmp_path / "global.yaml"
    _write_yaml(global_cfg, {"retrieval": {"top_k": 8, "min_score": 0.5}})
    _write_yaml(tmp_path / "docrag.yaml", {"retrieval": {"top_k": 3}})

    cfg = _load(tmp_path, global_cfg)
    assert cfg.retrieval.top_k == 3
    # deep merge keeps the global value for keys the project does not set
    assert cfg.retrieval.min_score == 0.5


def test_empty_project_file_gives_defaults(tmp_path: Path) -> None:
    (tmp_path / "docrag.yaml").write_text("# nothing\n", encoding="utf-8")
    cfg = _load(tmp_path)
    assert cfg.retrieval.top_k == 5


def test_env_overrides_files(tmp_path: Path, monkeypatch) -> None:
    _write_yaml(tmp_path / "docrag.yaml", {"vector_store": {"path": "from-file.db"}})
    monkeypatch.setenv("DOCRAG_DB_PATH", "from-env.db")
    monkeypatch.setenv("DOCRAG_GENERATION_MODEL", "ollama/llama3")
    monkeypatch.setenv("DOCRAG_LOG_LEVEL", "DEBUG")

    cfg = _load(tmp_path)
    assert cfg.vector_store.path == "from-env.db"
    assert cfg.generation.model == "ollama/llama3"
    assert cfg.logging.level == "DEBUG"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def test_global_config_rejects_api_key(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"generation": {"api_key": "gsk-secret"}})

    with pytest.raises(ConfigError, match="forbidden key"):
        _load(tmp_path, global_cfg)


def test_token_budget_is_not_mistaken_for_a_secret(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"retrieval": {"token_budget": 900}, "generation": {"max_tokens": 512}})

    cfg = _load(tmp_path, global_cfg)
    assert cfg.retrieval.token_budget == 900
    assert cfg.generation.max_tokens == 512


def test_unknown_section_warns(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "docrag.yaml", {"plugins": {"charts": True}})

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        _load(tmp_path)
    assert any("plugins" in str(w.message) for w in caught)


@pytest.mark.parametrize(
    "data, match",
    [
        ({"embedding": {"backend": "milvus"}}, "embedding.backend"),
        ({"ingestion": {"chunk_size": 0}}, "chunk_size"),
        ({"ingestion": {"overlap": -1}}, "overlap"),
        ({"retrieval": {"min_score": 1.5}}, "min_score"),
        ({"vector_store": {"collection": "chunks; DROP TABLE x"}}, "collection"),
        ({"retrieval": {"top_k": "many"}}, "Invalid config value"),
    ],
)
def test_invalid_values_raise(tmp_path: Path, data: dict, match: str) -> None:
    _write_yaml(tmp_path / "docrag.yaml", data)
    with pytest.raises(ConfigError, match=match):
        _load(tmp_path)
