"""Database connection management for SheetChat.

Synchronous SQLAlchemy access. SQLite by default; any SQLAlchemy URL can be
supplied through DATABASE_URL or the storage section of the config file.

Usage:
    from sheetchat.db.connection import get_db_context, init_db

    init_db()  # Create tables
    with get_db_context() as db:
        ThreadStore(db).list_threads()
"""

import logging
import os
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from sheetchat.db.models import Base

logger = logging.getLogger(__name__)


# Configuration
def get_database_url() -> str:
    """Get database URL from environment or use the default SQLite file.

    Precedence:
    1. DATABASE_URL (canonical)
    2. SHEETCHAT_DB_PATH (converted to a sqlite URL)
    3. sqlite:///<data dir>/sheetchat.db
    """
    database_url = os.environ.get("DATABASE_URL", "").strip()
    if database_url:
        return database_url

    db_path = os.environ.get("SHEETCHAT_DB_PATH", "").strip()
    if db_path:
        if db_path.startswith("sqlite:"):
            return db_path
        return f"sqlite:///{db_path}"

    from sheetchat.utils.paths import get_default_db_path

    return f"sqlite:///{get_default_db_path()}"


def _set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
    """Configure SQLite pragmas on every new connection.

    Enables:
    - foreign_keys=ON: Referential integrity, required for message cascade.
    - journal_mode=WAL: Concurrent readers alongside a single writer.
    - synchronous=NORMAL: Commits are durable after WAL fsync.
    """
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA synchronous=NORMAL;")
    cursor.close()


def create_db_engine(url: str, **kwargs: Any) -> Engine:
    """Create an engine, applying SQLite pragmas when the URL is SQLite.

    Args:
        url: SQLAlchemy database URL.
        **kwargs: Extra create_engine arguments (e.g. poolclass for tests).
    """
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    new_engine = create_engine(
        url,
        echo=os.environ.get("SQL_ECHO", "").lower() == "true",
        **kwargs,
    )
    if is_sqlite:
        event.listen(new_engine, "connect", _set_sqlite_pragma)
    return new_engine


def create_session_factory(bind: Engine) -> sessionmaker[Session]:
    """Return a session factory bound to an engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


# Engine creation
DATABASE_URL = get_database_url()
engine = create_db_engine(DATABASE_URL)

# Session factory
SessionLocal = create_session_factory(engine)


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """Context manager for database sessions outside of FastAPI.

    Commits on success, rolls back on error.

    Usage:
        with get_db_context() as db:
            thread = db.get(Thread, thread_id)
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    """Create all database tables.

    Safe to call multiple times - will not recreate existing tables. Creates
    the parent directory of a file-backed SQLite database first.

    Args:
        bind: Engine to initialize (defaults to the module engine).
    """
    target = bind or engine
    database = target.url.database
    if target.url.get_backend_name() == "sqlite" and database and database != ":memory:":
        os.makedirs(os.path.dirname(os.path.abspath(database)), exist_ok=True)
    Base.metadata.create_all(bind=target)
    logger.debug("Database initialized at %s", target.url)


def close_db() -> None:
    """Close the engine and dispose of connection pool."""
    engine.dispose()
