"""Persistence service for conversation threads and messages.

Thin layer between the orchestrator, the API routes and the SQLAlchemy
models. Messages are append-only: this service never updates or deletes a
single message, only whole threads.
"""

import json
import logging
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from sheetchat.db.models import Message, Thread, generate_uuid, utc_now_iso
from sheetchat.errors import NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Chat"
TITLE_MAX_LENGTH = 50


def title_from_message(content: str) -> str:
    """Derive a thread title from the first user message."""
    title = content.strip()[:TITLE_MAX_LENGTH]
    return title or DEFAULT_TITLE


class ThreadStore:
    """CRUD operations for threads and their message logs.

    Every mutating call commits before returning.

    Args:
        db: SQLAlchemy session (sync).
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def create_thread(self, thread_id: str | None = None, title: str = DEFAULT_TITLE) -> Thread:
        """Create a new thread row.

        Args:
            thread_id: Opaque id; a UUID is generated when omitted.
            title: Display title.

        Returns:
            The created Thread.
        """
        now = utc_now_iso()
        thread = Thread(
            id=thread_id or generate_uuid(),
            title=title,
            created_at=now,
            updated_at=now,
        )
        self._db.add(thread)
        self._db.commit()
        logger.debug("Created thread %s", thread.id)
        return thread

    def get_thread(self, thread_id: str) -> Thread | None:
        """Return the thread, or None if it does not exist."""
        return self._db.get(Thread, thread_id)

    def _require_thread(self, thread_id: str) -> Thread:
        thread = self.get_thread(thread_id)
        if thread is None:
            raise NotFoundError("Thread", thread_id)
        return thread

    def list_threads(self) -> list[Thread]:
        """List threads, most recently updated first."""
        stmt = select(Thread).order_by(Thread.updated_at.desc(), Thread.created_at.desc())
        return list(self._db.scalars(stmt))

    def touch_thread(self, thread_id: str) -> Thread:
        """Bump a thread's updated_at.

        Raises:
            NotFoundError: If the thread does not exist.
        """
        thread = self._require_thread(thread_id)
        thread.updated_at = utc_now_iso()
        self._db.commit()
        return thread

    def update_thread_title(self, thread_id: str, title: str) -> Thread:
        """Rename a thread.

        Raises:
            NotFoundError: If the thread does not exist.
        """
        thread = self._require_thread(thread_id)
        thread.title = title
        thread.updated_at = utc_now_iso()
        self._db.commit()
        return thread

    def delete_thread(self, thread_id: str) -> None:
        """Delete a thread and all of its messages in one commit.

        Messages are deleted explicitly so the cascade holds even on
        backends without enforced foreign keys.

        Raises:
            NotFoundError: If the thread does not exist.
        """
        self._require_thread(thread_id)
        self._db.execute(delete(Message).where(Message.thread_id == thread_id))
        self._db.execute(delete(Thread).where(Thread.id == thread_id))
        self._db.commit()
        logger.info("Deleted thread %s", thread_id)

    def create_message(
        self,
        message_id: str | None,
        thread_id: str,
        role: str,
        content: str,
        tool_calls: list[dict[str, Any]] | None = None,
    ) -> Message:
        """Append a message with the next per-thread sequence number.

        Also bumps the thread's updated_at in the same commit.

        Args:
            message_id: Opaque id; a UUID is generated when None.
            thread_id: Parent thread id.
            role: 'user', 'assistant', 'system' or 'tool'.
            content: Message text.
            tool_calls: Optional flattened tool invocations, stored as JSON.

        Returns:
            The created Message.

        Raises:
            NotFoundError: If the thread does not exist.
        """
        thread = self._require_thread(thread_id)

        # SELECT+INSERT is safe under SQLite's single-writer semantics.
        max_seq = self._db.scalar(
            select(func.max(Message.sequence)).where(Message.thread_id == thread_id)
        )
        msg = Message(
            id=message_id or generate_uuid(),
            thread_id=thread_id,
            role=role,
            content=content,
            tool_calls=json.dumps(tool_calls) if tool_calls else None,
            sequence=(max_seq or 0) + 1,
            created_at=utc_now_iso(),
        )
        self._db.add(msg)
        thread.updated_at = msg.created_at
        self._db.commit()
        return msg

    def get_messages_by_thread_id(self, thread_id: str) -> list[Message]:
        """Return a thread's messages in append order (empty if none)."""
        stmt = (
            select(Message)
            .where(Message.thread_id == thread_id)
            .order_by(Message.created_at, Message.sequence)
        )
        return list(self._db.scalars(stmt))

    def delete_messages_by_thread_id(self, thread_id: str) -> int:
        """Delete all messages of a thread, keeping the thread.

        Returns:
            Number of messages deleted.
        """
        result = self._db.execute(delete(Message).where(Message.thread_id == thread_id))
        self._db.commit()
        return result.rowcount or 0
