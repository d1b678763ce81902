"""Tests for Database connection, schema, and transactions."""

from __future__ import annotations

import os
import sqlite3
import stat
import sys
from typing import TYPE_CHECKING

import pytest

from shared.db.connection import Database

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def db(tmp_path: Path):
    database = Database(tmp_path / "test.db")
    database.connect()
    yield database
    database.close()


def _insert_game(conn, game_id: str = "g1") -> None:
    conn.execute("INSERT INTO games (id, status, data) VALUES (?, 'active', '{}')", (game_id,))


class TestConnect:
    def test_creates_schema(self, db: Database) -> None:
        tables = db.connection.execute(
            "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name",
        ).fetchall()
        assert [t[0] for t in tables] == ["customers", "games"]

    def test_uses_wal_and_foreign_keys(self, db: Database) -> None:
        assert db.connection.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
        assert db.connection.execute("PRAGMA foreign_keys").fetchone()[0] == 1

    def test_creates_parent_directory(self, tmp_path: Path) -> None:
        database = Database(tmp_path / "nested" / "dir" / "test.db")
        database.connect()
        assert (tmp_path / "nested" / "dir" / "test.db").exists()
        database.close()

    def test_reconnect_after_close(self, tmp_path: Path) -> None:
        database = Database(tmp_path / "test.db")
        database.connect()
        database.close()
        database.connect()
        assert database.connection is not None
        database.close()

    def test_connection_raises_when_closed(self, tmp_path: Path) -> None:
        database = Database(tmp_path / "test.db")
        with pytest.raises(RuntimeError, match="not connected"):
            _ = database.connection

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_database_file_is_owner_only(self, db: Database, tmp_path: Path) -> None:
        mode = stat.S_IMODE(os.stat(tmp_path / "test.db").st_mode)
        assert mode == 0o600


class TestTransaction:
    def test_commits_on_success(self, db: Database) -> None:
        with db.transaction() as conn:
            _insert_game(conn)
        assert db.connection.execute("SELECT COUNT(*) FROM games").fetchone()[0] == 1

    def test_rolls_back_on_error(self, db: Database) -> None:
        with pytest.raises(LookupError), db.transaction() as conn:
            _insert_game(conn)
            raise LookupError("boom")
        assert db.connection.execute("SELECT COUNT(*) FROM games").fetchone()[0] == 0

    def test_customer_requires_existing_game(self, db: Database) -> None:
        with pytest.raises(sqlite3.IntegrityError), db.transaction() as conn:
            conn.execute(
                "INSERT INTO customers (id, game_id, email, data) VALUES ('c1', 'missing', 'a@b.c', '{}')",
            )
