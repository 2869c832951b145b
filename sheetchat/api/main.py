"""FastAPI application entry point for SheetChat.

Wires the workbook store, the thread database and the model client into a
ConversationService and mounts the thread, chat and sheet routers under
/api/v1.

Usage:
    uvicorn sheetchat.api.main:app --reload
"""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from sheetchat import __version__
from sheetchat.api.routes import chat, sheets, threads
from sheetchat.config import SheetChatConfig, load_config
from sheetchat.db.connection import (
    SessionLocal,
    create_db_engine,
    create_session_factory,
    engine,
    init_db,
)
from sheetchat.errors import (
    ConflictError,
    DomainError,
    MalformedReference,
    NotFoundError,
    SheetNotFound,
)
from sheetchat.grid.store import GridStore
from sheetchat.orchestrator.agent.client import AnthropicModelClient, ModelClient
from sheetchat.services.conversation_service import ConversationService
from sheetchat.utils.paths import ensure_dirs_exist, get_default_workbook_path

# Configure root logger so application-level logs are visible in the console.
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[DomainError], int], ...] = (
    (MalformedReference, 400),
    (SheetNotFound, 404),
    (NotFoundError, 404),
    (ConflictError, 409),
)


def status_for_error(exc: DomainError) -> int:
    """HTTP status for a domain error (500 when unmapped)."""
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Handle DomainError exceptions with consistent format.

    Args:
        request: The incoming request.
        exc: The DomainError exception.

    Returns:
        JSONResponse with the error code and message.
    """
    return JSONResponse(
        status_code=status_for_error(exc),
        content={"error_code": exc.code, "detail": str(exc)},
    )


def create_app(
    config: SheetChatConfig | None = None,
    *,
    session_factory: sessionmaker[Session] | None = None,
    grid: GridStore | None = None,
    model_client: ModelClient | None = None,
) -> FastAPI:
    """Build the SheetChat API.

    Any collaborator left as None is built from config at startup:
    the database from storage.database_url (or DATABASE_URL), the workbook
    from storage.workbook_path (or the data directory), and an
    AnthropicModelClient from the agent section.

    Args:
        config: Loaded configuration (load_config() when None).
        session_factory: Session factory for an already-initialized database.
        grid: Workbook store.
        model_client: Model-completion client.
    """
    config = config or load_config()

    owned_engine: Engine | None = None
    if session_factory is None:
        if config.storage.database_url:
            owned_engine = create_db_engine(config.storage.database_url)
            session_factory = create_session_factory(owned_engine)
        else:
            owned_engine = engine
            session_factory = SessionLocal

    grid = grid or GridStore(config.storage.workbook_path or get_default_workbook_path())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create tables and the sample workbook, then build the orchestrator."""
        ensure_dirs_exist()
        if owned_engine is not None:
            init_db(owned_engine)
        grid.ensure_workbook()

        client = model_client or AnthropicModelClient(
            model=config.agent.model, max_tokens=config.agent.max_tokens
        )
        app.state.conversation_service = ConversationService(
            session_factory, grid, client, max_steps=config.agent.max_steps
        )
        logger.info("SheetChat API ready (workbook=%s)", grid.path)

        yield

        if owned_engine is not None and owned_engine is not engine:
            owned_engine.dispose()

    app = FastAPI(
        title="SheetChat API",
        description="Conversational assistant for reading and editing a spreadsheet",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.session_factory = session_factory
    app.state.grid = grid

    app.add_exception_handler(DomainError, domain_error_handler)

    app.include_router(threads.router, prefix="/api/v1")
    app.include_router(chat.router, prefix="/api/v1")
    app.include_router(sheets.router, prefix="/api/v1")

    @app.get("/health")
    def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "version": app.version}

    return app


app = create_app()
