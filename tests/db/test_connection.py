"""Tests for database URL resolution and engine setup."""

from pathlib import Path

import pytest
from sqlalchemy import inspect, text

from sheetchat.db.connection import create_db_engine, get_database_url, init_db


class TestGetDatabaseUrl:
    def test_database_url_wins(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite:///explicit.db")
        monkeypatch.setenv("SHEETCHAT_DB_PATH", "/tmp/other.db")
        assert get_database_url() == "sqlite:///explicit.db"

    def test_db_path_is_converted(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.setenv("SHEETCHAT_DB_PATH", "/tmp/chat.db")
        assert get_database_url() == "sqlite:////tmp/chat.db"

    def test_defaults_to_data_dir(self, monkeypatch: pytest.MonkeyPatch, isolated_environment: Path):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        assert get_database_url() == f"sqlite:///{isolated_environment / 'sheetchat.db'}"


class TestInitDb:
    def test_creates_tables_and_parent_dir(self, tmp_path: Path):
        db_file = tmp_path / "nested" / "dir" / "state.db"
        engine = create_db_engine(f"sqlite:///{db_file}")
        try:
            init_db(engine)
            assert db_file.exists()
            tables = set(inspect(engine).get_table_names())
            assert {"threads", "messages", "pending_actions"} <= tables
        finally:
            engine.dispose()

    def test_is_idempotent(self, db_engine):
        init_db(db_engine)
        init_db(db_engine)
        assert "threads" in inspect(db_engine).get_table_names()

    def test_foreign_keys_enabled(self, db_engine):
        with db_engine.connect() as conn:
            assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1
