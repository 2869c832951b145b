"""Error code registry with E-XXXX format codes.

This module defines the error code system for SheetChat, organizing errors
into categories:
- E-1xxx: Reference and lookup errors (addresses, sheets, threads)
- E-2xxx: Tool invocation errors
- E-4xxx: System/internal errors

Each error includes a code, title, message template, and remediation steps.
Tool failure results carry the code so clients can render a short,
attributable notice.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories for error codes."""

    REFERENCE = "reference"  # E-1xxx: Reference and lookup errors
    TOOL = "tool"  # E-2xxx: Tool invocation errors
    SYSTEM = "system"  # E-4xxx: System/internal errors


@dataclass
class ErrorCode:
    """Definition of an error code with metadata.

    Attributes:
        code: Error code in E-XXXX format.
        category: Error category for grouping.
        title: Short title for display.
        message_template: Message with {placeholders} for context.
        remediation: Action user should take to resolve.
        is_retryable: Whether the operation can be retried without user action.
    """

    code: str
    category: ErrorCategory
    title: str
    message_template: str
    remediation: str
    is_retryable: bool = False


ERROR_REGISTRY: dict[str, ErrorCode] = {
    # Reference errors (E-1xxx)
    "E-1001": ErrorCode(
        code="E-1001",
        category=ErrorCategory.REFERENCE,
        title="Malformed Reference",
        message_template="Cannot parse spreadsheet reference '{reference}'.",
        remediation="Use A1 notation such as 'B7', 'A1:C10' or '@Sheet1!A1:B5'.",
    ),
    "E-1002": ErrorCode(
        code="E-1002",
        category=ErrorCategory.REFERENCE,
        title="Sheet Not Found",
        message_template='Sheet "{sheet}" not found',
        remediation="Check the sheet name against the workbook's sheet list.",
    ),
    "E-1003": ErrorCode(
        code="E-1003",
        category=ErrorCategory.REFERENCE,
        title="Not Found",
        message_template="{resource_type} '{identifier}' not found",
        remediation="Refresh the list and retry with an existing identifier.",
    ),
    "E-1004": ErrorCode(
        code="E-1004",
        category=ErrorCategory.REFERENCE,
        title="Conflict",
        message_template="{details}",
        remediation="Reload the current state before retrying.",
    ),
    # Tool errors (E-2xxx)
    "E-2001": ErrorCode(
        code="E-2001",
        category=ErrorCategory.TOOL,
        title="Invalid Tool Arguments",
        message_template="Invalid arguments for {tool}: {details}",
        remediation="Call the tool again with arguments matching its schema.",
        is_retryable=True,
    ),
    "E-2002": ErrorCode(
        code="E-2002",
        category=ErrorCategory.TOOL,
        title="Unknown Tool",
        message_template="Unknown tool: {tool}",
        remediation="Only call tools listed in the tool catalog.",
    ),
    # System errors (E-4xxx)
    "E-4001": ErrorCode(
        code="E-4001",
        category=ErrorCategory.SYSTEM,
        title="Tool Execution Failed",
        message_template="{details}",
        remediation="This is a system error. Retry the operation.",
        is_retryable=True,
    ),
    "E-4002": ErrorCode(
        code="E-4002",
        category=ErrorCategory.SYSTEM,
        title="Workbook Write Failed",
        message_template="Could not save workbook {path}: {details}",
        remediation="Close the workbook in other programs and check the directory is writable.",
        is_retryable=True,
    ),
}


def get_error(code: str) -> ErrorCode | None:
    """Get error definition by code.

    Args:
        code: Error code in E-XXXX format.

    Returns:
        ErrorCode if found, None otherwise.
    """
    return ERROR_REGISTRY.get(code)


def get_errors_by_category(category: ErrorCategory) -> list[ErrorCode]:
    """Get all errors in a category."""
    return [e for e in ERROR_REGISTRY.values() if e.category == category]


def format_error_message(code: str, **context: object) -> str:
    """Render an error code's message template with context values.

    Missing placeholders leave the template untouched rather than raising.

    Args:
        code: Error code in E-XXXX format.
        **context: Values for the template placeholders.

    Returns:
        Formatted message, or "Unknown error: <code>" for unregistered codes.
    """
    error_def = get_error(code)
    if error_def is None:
        return f"Unknown error: {code}"
    try:
        return error_def.message_template.format(**context)
    except KeyError:
        return error_def.message_template
