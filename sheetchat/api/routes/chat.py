"""FastAPI routes for assistant turns and pending-action resolution.

Sending a message runs one orchestrator turn and streams its events back
as SSE. Each SSE data payload is a JSON object ``{"event": ..., "data": ...}``.
A client disconnect sets the turn's cancel signal; the turn then stops at
its next check and persists no assistant message.

Endpoints:
    POST   /chat/{thread_id}/messages           Run a turn (SSE stream)
    GET    /chat/pending/{action_id}            Inspect a pending action
    POST   /chat/pending/{action_id}/approve    Execute it with confirmed=true
    POST   /chat/pending/{action_id}/reject     Decline it
"""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator
from contextlib import aclosing
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from sse_starlette.sse import EventSourceResponse

from sheetchat.api.dependencies import get_conversation_service
from sheetchat.api.schemas import PendingActionResponse, SendMessageRequest
from sheetchat.errors import ConflictError, NotFoundError
from sheetchat.services.conversation_service import ConversationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


async def _event_generator(
    request: Request,
    service: ConversationService,
    thread_id: str,
    content: str,
) -> AsyncGenerator[dict[str, str], None]:
    """Relay orchestrator events as SSE payloads.

    Turn-level failures are reported as a final ``error`` event.
    """
    cancel_event = asyncio.Event()
    try:
        async with aclosing(
            service.process_message_stream(thread_id, content, cancel_event)
        ) as stream:
            async for event in stream:
                if await request.is_disconnected():
                    logger.info("Client disconnected from thread %s", thread_id)
                    cancel_event.set()
                yield {"data": json.dumps(event, default=str)}
    except Exception as e:
        logger.exception("Turn on thread %s failed", thread_id)
        yield {
            "data": json.dumps(
                {"event": "error", "data": {"thread_id": thread_id, "message": str(e)}}
            )
        }
    finally:
        cancel_event.set()


@router.post("/{thread_id}/messages")
async def send_message(
    thread_id: str,
    payload: SendMessageRequest,
    request: Request,
    service: ConversationService = Depends(get_conversation_service),
) -> EventSourceResponse:
    """Send a user message and stream the assistant's turn.

    The thread is created on first use, titled from the message.

    Returns:
        EventSourceResponse streaming orchestrator events.
    """
    return EventSourceResponse(
        _event_generator(request, service, thread_id, payload.content),
        media_type="text/event-stream",
    )


@router.get("/pending/{action_id}", response_model=PendingActionResponse)
def get_pending_action(
    action_id: str,
    service: ConversationService = Depends(get_conversation_service),
) -> dict[str, Any]:
    """Get a pending action and its resolution state.

    Raises:
        HTTPException: 404 if the action does not exist.
    """
    action = service.get_pending_action(action_id)
    if action is None:
        raise HTTPException(status_code=404, detail=f"Pending action '{action_id}' not found")
    return action


@router.post("/pending/{action_id}/approve")
async def approve_pending_action(
    action_id: str,
    service: ConversationService = Depends(get_conversation_service),
) -> dict[str, Any]:
    """Approve a pending action.

    Returns:
        The tool result in wire shape.

    Raises:
        HTTPException: 404 if unknown, 409 if already resolved.
    """
    try:
        result = await service.approve_pending_action(action_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return result.to_dict()


@router.post("/pending/{action_id}/reject", response_model=PendingActionResponse)
async def reject_pending_action(
    action_id: str,
    service: ConversationService = Depends(get_conversation_service),
) -> dict[str, Any]:
    """Reject a pending action; the assistant sees the refusal next turn.

    Raises:
        HTTPException: 404 if unknown, 409 if already resolved.
    """
    try:
        return await service.reject_pending_action(action_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
