"""Tests for docrag status, history, version and config errors."""

from __future__ import annotations

from pathlib import Path

import yaml
from typer.testing import CliRunner

from docrag.cli.main import app

runner = CliRunner()


def _invoke(project: Path, *args: str):
    return runner.invoke(app, ["--config-dir", str(project), *args])


def test_status_without_database(project: Path) -> None:
    result = _invoke(project, "status")
    assert result.exit_code == 0, result.output
    assert "Configuration" in result.output
    assert "No database found" in result.output


def test_status_after_ingest(project: Path) -> None:
    doc = project / "memo.txt"
    doc.write_text("Staff meeting moved to Friday.", encoding="utf-8")
    _invoke(project, "ingest", str(doc), "--document-id", "memo", "--owner", "U1")

    result = _invoke(project, "status")
    assert result.exit_code == 0, result.output
    assert "Chunks: 1" in result.output
    assert "Documents: 1" in result.output
    assert "document_chunks" in result.output


def test_status_unavailable_store(tmp_path: Path) -> None:
    blocked = tmp_path / "blocked.db"
    blocked.mkdir()
    (tmp_path / "docrag.yaml").write_text(
        yaml.dump({"vector_store": {"path": str(blocked)}, "logging": {"level": "ERROR"}}),
        encoding="utf-8",
    )

    result = _invoke(tmp_path, "status")
    assert result.exit_code == 1
    assert "Unavailable" in result.output


def test_history_empty_session(project: Path) -> None:
    result = _invoke(project, "history", "--session", "nobody")
    assert result.exit_code == 0, result.output
    assert "No turns saved" in result.output


def test_invalid_config_exits_1(tmp_path: Path) -> None:
    (tmp_path / "docrag.yaml").write_text(
        yaml.dump({"ingestion": {"chunk_size": 0}}), encoding="utf-8"
    )
    result = _invoke(tmp_path, "status")
    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


def test_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.startswith("docrag ")
