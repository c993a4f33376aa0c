"""Tests for the forward-only migration runner and schema initialisation."""

from __future__ import annotations

import sqlite3

import pytest

from docrag.db.connection import Database
from docrag.db.migrations import MIGRATIONS, run_migrations
from docrag.db.schema import CURRENT_VERSION, initialize


def _fresh_conn(tmp_path):
    """Open a new connection without running migrations."""
    return Database(tmp_path / "test.db").connect()


def _table_exists(conn, name: str) -> bool:
    return conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?", (name,)
    ).fetchone() is not None


def test_run_migrations_records_version(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    version = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()[0]
    assert version == MIGRATIONS[-1][0] == CURRENT_VERSION
    conn.close()


def test_run_migrations_idempotent(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    initialize(conn)
    count = conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    assert count == len(MIGRATIONS)
    conn.close()


@pytest.mark.parametrize("table", ["schema_version", "collections", "chat_messages"])
def test_initialize_creates_tables(tmp_path, table):
    conn = _fresh_conn(tmp_path)
    initialize(conn)
    assert _table_exists(conn, table)
    conn.close()


def test_chat_messages_rejects_unknown_role(tmp_db):
    with pytest.raises(sqlite3.IntegrityError):
        tmp_db.execute(
            "INSERT INTO chat_messages (id, session_id, role, content) VALUES (?, ?, ?, ?)",
            ("m1", "s1", "system", "hi"),
        )


def test_chat_messages_defaults(tmp_db):
    tmp_db.execute(
        "INSERT INTO chat_messages (id, session_id, role, content) VALUES (?, ?, ?, ?)",
        ("m1", "s1", "user", "hi"),
    )
    row = tmp_db.execute("SELECT referenced_docs, created_at FROM chat_messages").fetchone()
    assert row["referenced_docs"] == "[]"
    assert row["created_at"].endswith("Z")
