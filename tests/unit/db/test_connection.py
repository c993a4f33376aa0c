"""Tests for Database connection layer."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from docrag.db.connection import Database


def test_connect_creates_file_and_parent(tmp_path):
    db_path = tmp_path / "nested" / ".docrag.db"
    conn = Database(db_path).connect()
    conn.close()
    assert db_path.exists()


def test_sqlite_vec_loads(tmp_path):
    conn = Database(tmp_path / ".docrag.db").connect()
    version = conn.execute("SELECT vec_version()").fetchone()[0]
    conn.close()
    assert version.startswith("v")


def test_wal_journal_mode(tmp_path):
    conn = Database(tmp_path / ".docrag.db").connect()
    mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
    conn.close()
    assert mode == "wal"


def test_row_factory_set(tmp_path):
    conn = Database(tmp_path / ".docrag.db").connect()
    conn.execute("CREATE TABLE t (x INTEGER)")
    conn.execute("INSERT INTO t VALUES (42)")
    row = conn.execute("SELECT x FROM t").fetchone()
    conn.close()
    assert row["x"] == 42


def test_in_memory_database():
    db = Database(":memory:")
    assert db.db_path == ":memory:"
    with db as conn:
        assert conn.execute("SELECT 1").fetchone()[0] == 1


def test_connection_usable_from_worker_thread(tmp_path):
    conn = Database(tmp_path / ".docrag.db").connect()
    results: list[int] = []

    def worker():
        results.append(conn.execute("SELECT 7").fetchone()[0])

    t = threading.Thread(target=worker)
    t.start()
    t.join()
    conn.close()
    assert results == [7]


def test_context_manager_closes_connection(tmp_path):
    db = Database(str(tmp_path / ".docrag.db"))
    assert isinstance(db.db_path, Path)
    with db as conn:
        conn.execute("CREATE TABLE t (x INTEGER)")
    with pytest.raises(Exception):
        conn.execute("SELECT 1")
