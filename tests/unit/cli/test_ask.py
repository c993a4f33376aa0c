"""Tests for docrag ask."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from docrag.cli.main import app

runner = CliRunner()


def _invoke(project: Path, *args: str):
    return runner.invoke(app, ["--config-dir", str(project), *args])


def _seed(project: Path) -> None:
    doc = project / "invoice.txt"
    doc.write_text("Invoice total is 15,750,000 rupiah", encoding="utf-8")
    result = _invoke(project, "ingest", str(doc), "--document-id", "inv-1", "--owner", "U1")
    assert result.exit_code == 0, result.output


def test_ask_json_output(project: Path, mock_llm) -> None:
    _seed(project)

    result = _invoke(project, "ask", "What is the invoice total?", "--owner", "U1", "--json")

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data == {
        "response": "The invoice total is 15,750,000 rupiah.",
        "referencedDocuments": ["inv-1"],
    }
    system = mock_llm.call_args.kwargs["messages"][0]["content"]
    assert "Invoice total is 15,750,000 rupiah" in system


def test_ask_plain_output_lists_sources(project: Path, mock_llm) -> None:
    _seed(project)

    result = _invoke(project, "ask", "What is the invoice total?", "--owner", "U1")
    assert result.exit_code == 0, result.output
    assert "15,750,000 rupiah" in result.output
    assert "Sources: inv-1" in result.output


def test_ask_other_owner_sees_nothing(project: Path, mock_llm) -> None:
    _seed(project)

    result = _invoke(project, "ask", "What is the invoice total?", "--owner", "U2", "--json")
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["referencedDocuments"] == []


def test_ask_no_search(project: Path, mock_llm) -> None:
    _seed(project)

    result = _invoke(project, "ask", "Hello", "--owner", "U1", "--no-search", "--json")
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["referencedDocuments"] == []
    system = mock_llm.call_args.kwargs["messages"][0]["content"]
    assert "No document context available" in system


def test_ask_session_history_is_saved_and_reused(project: Path, mock_llm) -> None:
    _seed(project)
    first = _invoke(project, "ask", "What is the invoice total?", "--owner", "U1", "--session", "s1")
    assert first.exit_code == 0, first.output

    second = _invoke(project, "ask", "And in dollars?", "--owner", "U1", "--session", "s1")
    assert second.exit_code == 0, second.output
    system = mock_llm.call_args.kwargs["messages"][0]["content"]
    assert "Previous conversation context:\nUser: What is the invoice total?" in system

    history = _invoke(project, "history", "--session", "s1", "--json")
    turns = json.loads(history.stdout)
    assert [t["role"] for t in turns] == ["user", "assistant", "user", "assistant"]


def test_ask_generation_failure_exits_1(project: Path, mock_llm) -> None:
    mock_llm.side_effect = RuntimeError("provider down")

    result = _invoke(project, "ask", "Anything?", "--owner", "U1")
    assert result.exit_code == 1
    assert "Failed to generate response, please retry." in result.output


def test_ask_missing_api_key(project: Path, mock_llm, monkeypatch) -> None:
    monkeypatch.delenv("GROQ_API_KEY", raising=False)

    result = _invoke(project, "ask", "Anything?", "--owner", "U1")
    assert result.exit_code == 1
    assert "GROQ_API_KEY" in result.output
    mock_llm.assert_not_called()


def test_ask_saves_generated_document(project: Path, mock_llm) -> None:
    mock_llm.return_value = "Here is the document you requested:\n\nSupply agreement draft."
    out_dir = project / "out"

    result = _invoke(
        project, "ask", "Draft an agreement", "--owner", "U1", "--save-dir", str(out_dir), "--yes"
    )
    assert result.exit_code == 0, result.output
    saved = out_dir / "ai-generated-document.docx"
    assert saved.exists()
    assert saved.read_bytes()[:2] == b"PK"


def test_ask_json_includes_document_file(project: Path, mock_llm) -> None:
    mock_llm.return_value = "Summary: revenue grew 12 percent."

    result = _invoke(project, "ask", "Summarise", "--owner", "U1", "--json")
    assert result.exit_code == 0, result.output
    document = json.loads(result.stdout)["documentFile"]
    assert document["name"] == "ai-generated-document.pdf"
    assert document["type"] == "application/pdf"
    assert document["url"].startswith("data:application/pdf;base64,")


def test_ask_unsafe_save_dir(project: Path, mock_llm) -> None:
    result = _invoke(project, "ask", "q", "--owner", "U1", "--save-dir", "../../../outside")
    assert result.exit_code == 1
    assert "not allowed" in result.output
    mock_llm.assert_not_called()


def test_ask_empty_query(project: Path, mock_llm) -> None:
    result = _invoke(project, "ask", "   ", "--owner", "U1")
    assert result.exit_code == 1
    assert "empty" in result.output
