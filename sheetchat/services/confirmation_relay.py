"""Client-side relay for confirmation-gated tool results.

Scans the orchestrator's event stream for the first tool result that
requires confirmation and holds it until the user approves or rejects it.
Only one confirmation is surfaced at a time; later deflections in the same
stream are ignored until the held one is resolved.

Example:
    relay = ConfirmationRelay()
    async for event in service.process_message_stream(thread_id, text):
        relay.observe(event)
    if relay.pending is not None:
        print(relay.pending.description)
        result = await relay.approve(service.approve_pending_action)
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class PendingConfirmation:
    """A deflected tool call awaiting the user's decision."""

    tool_call_id: str | None
    tool_name: str | None
    action: str
    description: str
    target_type: str | None = None
    target_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    pending_action_id: str | None = None


def restate_confirmation(action: str, data: dict[str, Any]) -> str:
    """Phrase an approval as the user's own natural-language turn."""
    if action == "update" and "sheet" in data and "cell" in data:
        return f"Yes, confirmed. Update cell {data['sheet']}!{data['cell']} to {data.get('value')}"
    if action == "delete" or "threadId" in data:
        return "Yes, confirmed. Delete the thread."
    return "Yes, confirmed."


class ConfirmationRelay:
    """Holds at most one pending confirmation observed in an event stream."""

    def __init__(self) -> None:
        self._pending: PendingConfirmation | None = None

    @property
    def pending(self) -> PendingConfirmation | None:
        return self._pending

    def observe(self, event: dict[str, Any]) -> PendingConfirmation | None:
        """Inspect one orchestrator event.

        Returns:
            The newly captured confirmation, or None if the event is not a
            deflected tool result or a confirmation is already held.
        """
        if self._pending is not None or event.get("event") != "tool_result":
            return None

        payload = event.get("data") or {}
        result = payload.get("result") or {}
        if not result.get("requiresConfirmation"):
            return None

        self._pending = PendingConfirmation(
            tool_call_id=payload.get("call_id"),
            tool_name=payload.get("tool_name"),
            action=result.get("action", ""),
            description=result.get("description") or "Confirm this action?",
            target_type=result.get("targetType"),
            target_id=result.get("targetId"),
            data=dict(result.get("data") or {}),
            pending_action_id=result.get("pendingActionId"),
        )
        logger.debug("Captured pending confirmation: %s", self._pending.description)
        return self._pending

    def _require(self) -> PendingConfirmation:
        if self._pending is None:
            raise RuntimeError("No pending confirmation")
        return self._pending

    def restate(self) -> str:
        """Natural-language approval for the held confirmation."""
        pending = self._require()
        return restate_confirmation(pending.action, pending.data)

    async def approve(self, executor: Callable[[str], Awaitable[Any]]) -> Any:
        """Approve the held confirmation and clear it.

        Args:
            executor: Coroutine function taking the pending action id, e.g.
                ConversationService.approve_pending_action or an HTTP call.

        Returns:
            Whatever the executor returns (the tool result).

        Raises:
            RuntimeError: If nothing is pending or it has no pending action id.
        """
        pending = self._require()
        if pending.pending_action_id is None:
            raise RuntimeError("Pending confirmation has no pending action id")
        try:
            return await executor(pending.pending_action_id)
        finally:
            self._pending = None

    async def reject(
        self, notifier: Callable[[str], Awaitable[Any]] | None = None
    ) -> None:
        """Discard the held confirmation, optionally telling the server."""
        pending = self._require()
        self._pending = None
        if notifier is not None and pending.pending_action_id is not None:
            await notifier(pending.pending_action_id)
