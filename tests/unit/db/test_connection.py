"""Tests for the Database connection layer and schema initialization."""

from __future__ import annotations

from pathlib import Path

import pytest

from quire.db.connection import Database
from quire.db.schema import CURRENT_VERSION, initialize


def test_connect_creates_file(tmp_path):
    db_path = tmp_path / ".quire.db"
    conn = Database(db_path).connect()
    conn.close()
    assert db_path.exists()


def test_sqlite_vec_loads(tmp_path):
    conn = Database(tmp_path / ".quire.db").connect()
    version = conn.execute("SELECT vec_version()").fetchone()[0]
    conn.close()
    assert version.startswith("v")


def test_foreign_keys_and_wal(tmp_path):
    conn = Database(tmp_path / ".quire.db").connect()
    assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
    assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
    conn.close()


def test_in_memory_database():
    db = Database(":memory:")
    assert db.db_path == ":memory:"
    with db as conn:
        assert conn.execute("SELECT 1").fetchone()[0] == 1


def test_context_manager_closes_connection(tmp_path):
    db = Database(str(tmp_path / ".quire.db"))
    assert isinstance(db.db_path, Path)
    with db as conn:
        conn.execute("CREATE TABLE t (x INTEGER)")
    with pytest.raises(Exception):
        conn.execute("SELECT 1")


def test_connection_usable_from_another_thread(tmp_path):
    import threading

    conn = Database(tmp_path / ".quire.db").connect()
    result = []
    t = threading.Thread(target=lambda: result.append(conn.execute("SELECT 7").fetchone()[0]))
    t.start()
    t.join()
    conn.close()
    assert result == [7]


def test_initialize_is_idempotent(tmp_path):
    conn = Database(tmp_path / ".quire.db").connect()
    initialize(conn)
    initialize(conn)
    version = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()[0]
    conn.close()
    assert version == CURRENT_VERSION
