"""Ledger of deflected gated tool calls.

A deflection records the exact tool name and arguments the model proposed.
Approval later executes those stored arguments directly instead of asking
the model to reconstruct them.
"""

import json
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from sheetchat.db.models import (
    PendingAction,
    PendingActionStatus,
    generate_uuid,
    utc_now_iso,
)
from sheetchat.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


class PendingActionService:
    """Create, look up and resolve pending actions.

    Args:
        db: SQLAlchemy session (sync).
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def record(
        self,
        tool_name: str,
        parameters: dict[str, Any],
        description: str,
        thread_id: str | None = None,
    ) -> PendingAction:
        """Persist a new pending action and return it."""
        action = PendingAction(
            id=generate_uuid(),
            thread_id=thread_id,
            tool_name=tool_name,
            parameters=json.dumps(parameters),
            description=description,
            status=PendingActionStatus.pending.value,
            created_at=utc_now_iso(),
        )
        self._db.add(action)
        self._db.commit()
        logger.info(
            "Recorded pending action %s (%s) in thread %s",
            action.id, tool_name, thread_id,
        )
        return action

    def get(self, action_id: str) -> PendingAction | None:
        return self._db.get(PendingAction, action_id)

    def require_pending(self, action_id: str) -> PendingAction:
        """Return an action that can still be approved or rejected.

        Raises:
            NotFoundError: If no such action exists.
            ConflictError: If it was already resolved.
        """
        action = self.get(action_id)
        if action is None:
            raise NotFoundError("Pending action", action_id)
        if action.status != PendingActionStatus.pending.value:
            raise ConflictError(
                f"Pending action '{action_id}' is already {action.status}"
            )
        return action

    def list_for_thread(
        self, thread_id: str, status: PendingActionStatus | None = None
    ) -> list[PendingAction]:
        stmt = select(PendingAction).where(PendingAction.thread_id == thread_id)
        if status is not None:
            stmt = stmt.where(PendingAction.status == status.value)
        return list(self._db.scalars(stmt.order_by(PendingAction.created_at)))

    def resolve(
        self,
        action: PendingAction,
        status: PendingActionStatus,
        result: dict[str, Any] | None = None,
    ) -> PendingAction:
        """Mark an action as executed, failed or rejected."""
        action.status = status.value
        action.result = json.dumps(result) if result is not None else None
        action.resolved_at = utc_now_iso()
        self._db.commit()
        logger.info("Pending action %s -> %s", action.id, status.value)
        return action

    @staticmethod
    def parameters_of(action: PendingAction) -> dict[str, Any]:
        return json.loads(action.parameters)

    @staticmethod
    def to_dict(action: PendingAction) -> dict[str, Any]:
        return {
            "id": action.id,
            "thread_id": action.thread_id,
            "tool_name": action.tool_name,
            "parameters": json.loads(action.parameters),
            "description": action.description,
            "status": action.status,
            "result": json.loads(action.result) if action.result else None,
            "created_at": action.created_at,
            "resolved_at": action.resolved_at,
        }
