"""SQLAlchemy ORM models for the SheetChat state database.

Defines conversation threads, their append-only message logs, and the
pending-action ledger for confirmation-gated tool calls. Uses SQLAlchemy
2.0 style with Mapped and mapped_column.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def generate_uuid() -> str:
    """Generate a UUID4 string for primary keys."""
    return str(uuid4())


def utc_now_iso() -> str:
    """Generate current UTC timestamp in ISO8601 format."""
    return datetime.now(UTC).isoformat()


class MessageRole(str, Enum):
    """Author of a persisted message."""

    user = "user"
    assistant = "assistant"
    system = "system"
    tool = "tool"


class PendingActionStatus(str, Enum):
    """Status values for a deflected tool call.

    Lifecycle: pending -> executed/failed (approved) or rejected
    """

    pending = "pending"
    executed = "executed"
    failed = "failed"
    rejected = "rejected"


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""


class Thread(Base):
    """A persisted conversation.

    Attributes:
        id: Opaque string primary key (client-supplied or UUID).
        title: Display title, derived from the first user message.
        created_at: ISO8601 creation timestamp.
        updated_at: ISO8601 timestamp bumped on every appended message.
    """

    __tablename__ = "threads"
    __table_args__ = (Index("ix_threads_updated", "updated_at"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_uuid)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="New Chat")
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    messages: Mapped[list["Message"]] = relationship(
        "Message",
        back_populates="thread",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Message.sequence",
    )

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "title": self.title,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Thread(id={self.id!r}, title={self.title!r})>"


class Message(Base):
    """One immutable turn in a thread.

    Attributes:
        id: Opaque string primary key.
        thread_id: FK to Thread (cascade delete).
        role: 'user', 'assistant', 'system' or 'tool'.
        content: Message text.
        tool_calls: Optional JSON list of flattened tool invocations.
        sequence: Ordering within the thread (monotonically increasing).
        created_at: ISO8601 creation timestamp.
    """

    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint("thread_id", "sequence", name="uq_messages_thread_seq"),
        Index("ix_messages_thread_seq", "thread_id", "sequence"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_uuid)
    thread_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("threads.id", ondelete="CASCADE"),
        nullable=False,
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    tool_calls: Mapped[str | None] = mapped_column(Text, nullable=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    thread: Mapped["Thread"] = relationship("Thread", back_populates="messages")

    def to_dict(self) -> dict[str, str | int | None]:
        return {
            "id": self.id,
            "thread_id": self.thread_id,
            "role": self.role,
            "content": self.content,
            "tool_calls": self.tool_calls,
            "sequence": self.sequence,
            "created_at": self.created_at,
        }

    def __repr__(self) -> str:
        return f"<Message(id={self.id!r}, role={self.role!r}, seq={self.sequence})>"


class PendingAction(Base):
    """Durable record of a deflected gated tool call.

    thread_id is not a foreign key, so the row outlives a thread
    deleted by approving the action itself.

    Attributes:
        id: UUID primary key, handed to clients as pendingActionId.
        thread_id: Thread in which the call was proposed (may be None).
        tool_name: Registered tool name, e.g. 'updateCell'.
        parameters: JSON object of the proposed arguments (without confirmed).
        description: Human-readable description shown in the approval prompt.
        status: pending, executed, failed or rejected.
        result: JSON tool result recorded on approval.
        created_at: ISO8601 creation timestamp.
        resolved_at: ISO8601 timestamp of approval or rejection.
    """

    __tablename__ = "pending_actions"
    __table_args__ = (Index("ix_pending_actions_thread", "thread_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    thread_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    tool_name: Mapped[str] = mapped_column(String(64), nullable=False)
    parameters: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PendingActionStatus.pending.value
    )
    result: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    resolved_at: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<PendingAction(id={self.id!r}, tool={self.tool_name!r}, "
            f"status={self.status!r})>"
        )
