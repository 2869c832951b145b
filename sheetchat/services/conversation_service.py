"""Conversation orchestrator.

Runs one user turn end to end: persists the user message, drives the model
through up to ``max_steps`` tool rounds, dispatches every requested tool
through the confirmation gate, streams SSE-compatible events, and persists
the assistant message with the flattened tool invocations.

Also resolves pending actions out of band of the model: approval executes
the stored tool call with confirmed=true, rejection records a system note
the model sees on its next turn.

Example:
    service = ConversationService(SessionLocal, grid, AnthropicModelClient())
    async for event in service.process_message_stream("t1", "Show @Sheet1!A1:D6"):
        print(event["event"], event["data"])
"""

import asyncio
import json
import logging
import weakref
from collections.abc import AsyncGenerator, Callable
from contextlib import aclosing, nullcontext
from typing import Any

from sqlalchemy.orm import Session

from sheetchat.db.models import Message, MessageRole, PendingActionStatus
from sheetchat.grid.store import GridStore
from sheetchat.orchestrator.agent.client import (
    ModelClient,
    StepComplete,
    TextDelta,
    assistant_message,
    tool_results_message,
)
from sheetchat.orchestrator.agent.gate import ConfirmationGate
from sheetchat.orchestrator.agent.system_prompt import build_system_prompt
from sheetchat.orchestrator.agent.tools import (
    Deflected,
    ToolContext,
    ToolInvocation,
    ToolResult,
    dispatch_tool_call,
    get_all_tool_definitions,
)
from sheetchat.services.confirmation_relay import restate_confirmation
from sheetchat.services.pending_action_service import PendingActionService
from sheetchat.services.thread_store import ThreadStore, title_from_message

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 10

_ACTION_BY_TOOL = {"updateCell": "update", "deleteThreadTool": "delete"}


def _summarize_invocation(invocation: dict[str, Any]) -> str:
    result = invocation.get("result") or {}
    if result.get("requiresConfirmation"):
        outcome = "awaiting user confirmation, not performed"
    elif result.get("success"):
        outcome = result.get("message") or "ok"
    else:
        outcome = f"failed: {result.get('error', 'unknown error')}"
    params = json.dumps(invocation.get("parameters") or {}, default=str)
    return f"[Called {invocation.get('tool_name')}({params}) -> {outcome}]"


def history_to_model_messages(messages: list[Message]) -> list[dict[str, Any]]:
    """Convert persisted messages into model history.

    user -> user; assistant -> assistant with tool invocations summarised as
    bracketed notes; system and tool -> user-side bracketed notes.
    Consecutive same-role messages are merged, empty ones skipped, and
    leading assistant messages dropped.
    """
    converted: list[dict[str, Any]] = []
    for message in messages:
        if message.role == MessageRole.user.value:
            role, text = "user", message.content
        elif message.role == MessageRole.assistant.value:
            notes = []
            if message.tool_calls:
                try:
                    notes = [_summarize_invocation(i) for i in json.loads(message.tool_calls)]
                except (json.JSONDecodeError, TypeError):
                    logger.warning("Corrupted tool_calls for message %s", message.id)
            role, text = "assistant", "\n".join([*notes, message.content]).strip()
        elif message.role == MessageRole.system.value:
            role, text = "user", f"[System note: {message.content}]"
        else:
            role, text = "user", f"[Tool result: {message.content}]"

        if not text.strip():
            continue
        if converted and converted[-1]["role"] == role:
            converted[-1]["content"] += "\n\n" + text
        else:
            converted.append({"role": role, "content": text})

    while converted and converted[0]["role"] == "assistant":
        converted.pop(0)
    return converted


class ConversationService:
    """Drives conversation turns and pending-action resolution.

    Holds one asyncio.Lock per active thread so turns and approvals on the
    same thread never interleave. Each turn uses its own database session.

    Args:
        session_factory: Callable returning a new SQLAlchemy Session.
        grid: Shared workbook store.
        model_client: Model-completion client.
        max_steps: Maximum model rounds per turn.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        grid: GridStore,
        model_client: ModelClient,
        max_steps: int = DEFAULT_MAX_STEPS,
    ) -> None:
        self._session_factory = session_factory
        self._grid = grid
        self._model = model_client
        self._max_steps = max_steps
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, thread_id: str) -> asyncio.Lock:
        # Entries vanish once no turn or approval holds or awaits the lock.
        lock = self._locks.get(thread_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[thread_id] = lock
        return lock

    async def process_message_stream(
        self,
        thread_id: str,
        content: str,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncGenerator[dict[str, Any], None]:
        """Process a user message and yield SSE-compatible event dicts.

        Yields:
            Event dicts with these event types:
            - "agent_message_delta": Partial text chunk
            - "tool_call": Tool invocation starting
            - "tool_result": Tool result in wire shape
            - "confirmation_required": A gated call was deflected
            - "agent_message": Complete assistant text for the turn
            - "done": Turn finished and persisted
            - "cancelled": Turn abandoned; no assistant message persisted

        Raises:
            ValueError: If the content is blank; nothing is persisted.
            Model-client and persistence faults outside tool bodies. The user
            message stays persisted when they happen after step 2.
        """
        if not content.strip():
            raise ValueError("Message content must not be blank")

        def cancelled() -> bool:
            return cancel_event is not None and cancel_event.is_set()

        async with self._lock_for(thread_id):
            with self._session_factory() as db:
                store = ThreadStore(db)
                pending = PendingActionService(db)

                if store.get_thread(thread_id) is None:
                    store.create_thread(thread_id, title_from_message(content))
                store.create_message(None, thread_id, MessageRole.user.value, content)

                system_prompt = build_system_prompt(self._grid.get_sheet_names(), thread_id)
                definitions = get_all_tool_definitions(
                    ToolContext(grid=self._grid, thread_store=store, thread_id=thread_id)
                )
                gate = ConfirmationGate(
                    recorder=lambda name, params, description: pending.record(
                        name, params, description, thread_id=thread_id
                    ).id
                )
                tools = [d.to_api_schema() for d in definitions]
                messages = history_to_model_messages(store.get_messages_by_thread_id(thread_id))

                text_parts: list[str] = []
                invocations: list[ToolInvocation] = []
                steps = 0
                step_limit_reached = False

                while True:
                    if steps >= self._max_steps:
                        step_limit_reached = True
                        logger.warning(
                            "Thread %s hit the step limit (%d)", thread_id, self._max_steps
                        )
                        break
                    steps += 1

                    complete: StepComplete | None = None
                    async with aclosing(
                        self._model.stream_step(system_prompt, messages, tools)
                    ) as stream:
                        async for step_event in stream:
                            if cancelled():
                                break
                            if isinstance(step_event, TextDelta):
                                yield {
                                    "event": "agent_message_delta",
                                    "data": {"text": step_event.text},
                                }
                            elif isinstance(step_event, StepComplete):
                                complete = step_event

                    if cancelled():
                        logger.info("Turn on thread %s cancelled at step %d", thread_id, steps)
                        yield {"event": "cancelled", "data": {"thread_id": thread_id}}
                        return
                    if complete is None:
                        raise RuntimeError("Model stream ended without completing the step")

                    if complete.text:
                        text_parts.append(complete.text)
                    if not complete.tool_calls:
                        break

                    messages.append(assistant_message(complete.text, complete.tool_calls))
                    round_results: list[tuple[str, dict[str, Any]]] = []
                    for call in complete.tool_calls:
                        yield {
                            "event": "tool_call",
                            "data": {
                                "call_id": call.call_id,
                                "tool_name": call.tool_name,
                                "tool_input": call.parameters,
                            },
                        }
                        result = await dispatch_tool_call(
                            definitions, call.tool_name, call.parameters, gate
                        )
                        wire = result.to_dict()
                        invocations.append(
                            ToolInvocation(
                                tool_name=call.tool_name,
                                call_id=call.call_id,
                                parameters=call.parameters,
                                result=result,
                            )
                        )
                        round_results.append((call.call_id, wire))
                        yield {
                            "event": "tool_result",
                            "data": {
                                "call_id": call.call_id,
                                "tool_name": call.tool_name,
                                "result": wire,
                            },
                        }
                        if isinstance(result, Deflected):
                            yield {
                                "event": "confirmation_required",
                                "data": {
                                    "call_id": call.call_id,
                                    "tool_name": call.tool_name,
                                    **wire,
                                },
                            }
                        if cancelled():
                            break

                    messages.append(tool_results_message(round_results))
                    if cancelled():
                        logger.info(
                            "Turn on thread %s cancelled after tool dispatch", thread_id
                        )
                        yield {"event": "cancelled", "data": {"thread_id": thread_id}}
                        return

                text = "\n\n".join(text_parts)
                message_id = None
                if store.get_thread(thread_id) is None:
                    logger.info("Thread %s was deleted during its own turn", thread_id)
                elif text or invocations:
                    message = store.create_message(
                        None,
                        thread_id,
                        MessageRole.assistant.value,
                        text,
                        tool_calls=[i.to_dict() for i in invocations] or None,
                    )
                    store.touch_thread(thread_id)
                    message_id = message.id

                logger.info(
                    "Turn complete on thread %s: steps=%d tool_calls=%d",
                    thread_id, steps, len(invocations),
                )
                yield {"event": "agent_message", "data": {"text": text}}
                yield {
                    "event": "done",
                    "data": {
                        "thread_id": thread_id,
                        "message_id": message_id,
                        "steps": steps,
                        "step_limit_reached": step_limit_reached,
                    },
                }

    def get_pending_action(self, action_id: str) -> dict[str, Any] | None:
        """Return a pending action as a dict, or None."""
        with self._session_factory() as db:
            pending = PendingActionService(db)
            action = pending.get(action_id)
            return pending.to_dict(action) if action is not None else None

    def _thread_of(self, action_id: str) -> str | None:
        with self._session_factory() as db:
            return PendingActionService(db).require_pending(action_id).thread_id

    async def approve_pending_action(self, action_id: str) -> ToolResult:
        """Execute a pending action with its stored parameters and confirmed=true.

        Records the outcome on the action and, while the action's thread
        still exists, appends the approval as a user message and the result
        as a tool message.

        Raises:
            NotFoundError: If the action does not exist.
            ConflictError: If the action was already resolved.
        """
        thread_id = self._thread_of(action_id)
        async with self._lock_for(thread_id) if thread_id else nullcontext():
            with self._session_factory() as db:
                pending = PendingActionService(db)
                store = ThreadStore(db)
                action = pending.require_pending(action_id)

                parameters = pending.parameters_of(action)
                definitions = get_all_tool_definitions(
                    ToolContext(grid=self._grid, thread_store=store, thread_id=thread_id)
                )
                result = await dispatch_tool_call(
                    definitions,
                    action.tool_name,
                    {**parameters, "confirmed": True},
                    ConfirmationGate(),
                )
                status = (
                    PendingActionStatus.executed if result.success else PendingActionStatus.failed
                )
                pending.resolve(action, status, result.to_dict())
                logger.info("Approved pending action %s: %s", action_id, status.value)

                if thread_id and store.get_thread(thread_id) is not None:
                    invocation = ToolInvocation(
                        tool_name=action.tool_name,
                        call_id=action.id,
                        parameters={**parameters, "confirmed": True},
                        result=result,
                    )
                    store.create_message(
                        None,
                        thread_id,
                        MessageRole.user.value,
                        restate_confirmation(
                            _ACTION_BY_TOOL.get(action.tool_name, ""), parameters
                        ),
                    )
                    store.create_message(
                        None,
                        thread_id,
                        MessageRole.tool.value,
                        json.dumps(result.to_dict(), default=str),
                        tool_calls=[invocation.to_dict()],
                    )
                return result

    async def reject_pending_action(self, action_id: str) -> dict[str, Any]:
        """Mark a pending action rejected and leave a note for the model.

        Raises:
            NotFoundError: If the action does not exist.
            ConflictError: If the action was already resolved.
        """
        thread_id = self._thread_of(action_id)
        async with self._lock_for(thread_id) if thread_id else nullcontext():
            with self._session_factory() as db:
                pending = PendingActionService(db)
                store = ThreadStore(db)
                action = pending.require_pending(action_id)
                pending.resolve(action, PendingActionStatus.rejected)
                logger.info("Rejected pending action %s", action_id)

                if thread_id and store.get_thread(thread_id) is not None:
                    store.create_message(
                        None,
                        thread_id,
                        MessageRole.system.value,
                        f"The user declined: {action.description}",
                    )
                return pending.to_dict(action)
