"""API routes for thread management.

Provides endpoints for listing, creating, renaming and deleting threads
and for reading a thread's message log.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from sheetchat.api.dependencies import get_session
from sheetchat.api.schemas import (
    CreateThreadRequest,
    RenameThreadRequest,
    ThreadDetailResponse,
    ThreadResponse,
)
from sheetchat.db.models import Thread
from sheetchat.errors import NotFoundError
from sheetchat.services.thread_store import DEFAULT_TITLE, ThreadStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/threads", tags=["threads"])


def get_thread_store(db: Session = Depends(get_session)) -> ThreadStore:
    """Dependency to get ThreadStore instance."""
    return ThreadStore(db)


@router.get("", response_model=list[ThreadResponse])
def list_threads(store: ThreadStore = Depends(get_thread_store)) -> list[Thread]:
    """List threads, most recently updated first."""
    return store.list_threads()


@router.post("", response_model=ThreadResponse, status_code=201)
def create_thread(
    payload: CreateThreadRequest | None = None,
    store: ThreadStore = Depends(get_thread_store),
) -> Thread:
    """Create a new, empty thread.

    Raises:
        HTTPException: 409 if a thread with the requested id already exists.
    """
    payload = payload or CreateThreadRequest()
    if payload.id and store.get_thread(payload.id) is not None:
        raise HTTPException(status_code=409, detail=f"Thread '{payload.id}' already exists")
    return store.create_thread(payload.id, payload.title or DEFAULT_TITLE)


@router.get("/{thread_id}", response_model=ThreadDetailResponse)
def get_thread(
    thread_id: str, store: ThreadStore = Depends(get_thread_store)
) -> ThreadDetailResponse:
    """Get a thread with all of its messages in order.

    Raises:
        HTTPException: 404 if the thread does not exist.
    """
    thread = store.get_thread(thread_id)
    if thread is None:
        raise HTTPException(status_code=404, detail=f"Thread '{thread_id}' not found")
    return ThreadDetailResponse.model_validate(
        {
            **thread.to_dict(),
            "messages": [m.to_dict() for m in store.get_messages_by_thread_id(thread_id)],
        }
    )


@router.patch("/{thread_id}", response_model=ThreadResponse)
def rename_thread(
    thread_id: str,
    payload: RenameThreadRequest,
    store: ThreadStore = Depends(get_thread_store),
) -> Thread:
    """Rename a thread.

    Raises:
        HTTPException: 404 if the thread does not exist.
    """
    try:
        return store.update_thread_title(thread_id, payload.title)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.delete("/{thread_id}")
def delete_thread(
    thread_id: str, store: ThreadStore = Depends(get_thread_store)
) -> dict[str, str]:
    """Delete a thread and all of its messages.

    Raises:
        HTTPException: 404 if the thread does not exist.
    """
    try:
        store.delete_thread(thread_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return {"status": "deleted", "thread_id": thread_id}
