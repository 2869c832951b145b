"""Pydantic schemas for SheetChat API request/response validation.

Defines the contracts for thread management, chat messages, pending
actions and read-only sheet access.
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CreateThreadRequest(BaseModel):
    """Optional request body for creating a thread."""

    id: str | None = Field(
        default=None, max_length=64, description="Client-chosen thread id (UUID when omitted)"
    )
    title: str | None = Field(default=None, max_length=255, description="Display title")


class RenameThreadRequest(BaseModel):
    """Request for renaming a thread."""

    title: str = Field(..., min_length=1, max_length=255)


class ThreadResponse(BaseModel):
    """Thread summary."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    created_at: str
    updated_at: str


class MessageResponse(BaseModel):
    """A persisted message in a thread."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    thread_id: str
    role: str
    content: str
    tool_calls: list[dict[str, Any]] | None = None
    sequence: int
    created_at: str

    @field_validator("tool_calls", mode="before")
    @classmethod
    def parse_tool_calls(cls, value: Any) -> Any:
        """Decode the JSON-encoded column value."""
        if isinstance(value, str):
            return json.loads(value)
        return value


class ThreadDetailResponse(ThreadResponse):
    """Thread with its full message log."""

    messages: list[MessageResponse]


class SendMessageRequest(BaseModel):
    """Request for sending a user message to the assistant."""

    content: str = Field(..., min_length=1, description="User message text")

    @field_validator("content")
    @classmethod
    def reject_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message content must not be blank")
        return value


class PendingActionResponse(BaseModel):
    """A deflected tool call and its resolution state."""

    id: str
    thread_id: str | None = None
    tool_name: str
    parameters: dict[str, Any]
    description: str
    status: str
    result: dict[str, Any] | None = None
    created_at: str
    resolved_at: str | None = None


class SheetListResponse(BaseModel):
    """Sheet names in workbook order."""

    sheets: list[str]


class TableResponse(BaseModel):
    """Rectangular sheet data: first row as headers."""

    headers: list[str]
    rows: list[list[Any]]
    range: str


class CellResponse(BaseModel):
    """A single cell value with its formula, when it has one."""

    address: str
    value: Any = None
    formula: str | None = None
