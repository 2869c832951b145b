"""Root-level pytest fixtures for all tests.

Provides shared fixtures:
- An isolated data directory per test (no writes to the user's profile)
- In-memory SQLite engine, session factory and session
- A temporary workbook seeded with the sample sheet
"""

from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from sheetchat.db.connection import create_db_engine, create_session_factory, init_db
from sheetchat.grid.store import GridStore
from sheetchat.services.thread_store import ThreadStore


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every path lookup at a per-test directory."""
    data_dir = tmp_path / "data"
    monkeypatch.setenv("SHEETCHAT_DATA_DIR", str(data_dir))
    for name in ("SHEETCHAT_CONFIG_PATH", "SHEETCHAT_WORKBOOK_PATH", "SHEETCHAT_DB_PATH"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return data_dir


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def db_engine() -> Generator[Engine, None, None]:
    """In-memory SQLite engine with all tables created."""
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(db_engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def thread_store(db_session: Session) -> ThreadStore:
    return ThreadStore(db_session)


# ============================================================================
# Workbook Fixtures
# ============================================================================


@pytest.fixture
def workbook_path(tmp_path: Path) -> Path:
    return tmp_path / "workbook" / "example.xlsx"


@pytest.fixture
def grid(workbook_path: Path) -> GridStore:
    """Grid store over a freshly created sample workbook."""
    store = GridStore(workbook_path)
    store.ensure_workbook()
    return store
