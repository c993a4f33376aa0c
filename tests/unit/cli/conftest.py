"""Fixtures for CLI tests: isolated config, database and offline models."""

from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
import yaml
from loguru import logger

from docrag.services import reset_services


@pytest.fixture(autouse=True)
def _isolated_services(monkeypatch, fake_embedder):
    """Fresh shared services per test, with the offline embedder."""
    for var in (
        "DOCRAG_GENERATION_MODEL",
        "DOCRAG_EMBEDDING_MODEL",
        "DOCRAG_DB_PATH",
        "DOCRAG_COLLECTION",
        "DOCRAG_LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("GROQ_API_KEY", "gsk-test")
    monkeypatch.setattr("docrag.services.get_embedder", lambda cfg: fake_embedder)
    reset_services()
    yield
    reset_services()
    # setup_logger() points loguru at the runner's (now closed) stderr
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def project(tmp_path) -> Path:
    """Project directory whose docrag.yaml points at a temporary database."""
    config = {
        "vector_store": {"path": str(tmp_path / ".docrag.db")},
        "logging": {"level": "ERROR"},
    }
    (tmp_path / "docrag.yaml").write_text(yaml.dump(config), encoding="utf-8")
    return tmp_path


@pytest.fixture
def mock_llm():
    """Patch the chat completion call; set ``return_value`` / ``side_effect`` per test."""
    with patch(
        "docrag.rag.llm_client.complete",
        new=AsyncMock(return_value="The invoice total is 15,750,000 rupiah."),
    ) as mock_complete:
        yield mock_complete
