"""Database module for SheetChat threads, messages and pending actions."""

from sheetchat.db.connection import (
    SessionLocal,
    create_db_engine,
    create_session_factory,
    engine,
    get_db_context,
    init_db,
)
from sheetchat.db.models import (
    Base,
    Message,
    MessageRole,
    PendingAction,
    PendingActionStatus,
    Thread,
)

__all__ = [
    # Models
    "Base",
    "Thread",
    "Message",
    "PendingAction",
    # Enums
    "MessageRole",
    "PendingActionStatus",
    # Connection
    "engine",
    "SessionLocal",
    "create_db_engine",
    "create_session_factory",
    "get_db_context",
    "init_db",
]
