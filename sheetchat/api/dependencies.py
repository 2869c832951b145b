"""Request-scoped dependencies backed by objects stored on app.state."""

from collections.abc import Generator

from fastapi import Request
from sqlalchemy.orm import Session

from sheetchat.grid.store import GridStore
from sheetchat.services.conversation_service import ConversationService


def get_session(request: Request) -> Generator[Session, None, None]:
    """Yield a database session from the app's session factory.

    Yields:
        Session: SQLAlchemy session that will be closed after use.
    """
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_grid(request: Request) -> GridStore:
    return request.app.state.grid


def get_conversation_service(request: Request) -> ConversationService:
    return request.app.state.conversation_service
