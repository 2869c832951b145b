"""Error handling framework for SheetChat.

This package provides:
- Error code registry with E-XXXX format codes
- Typed domain exceptions raised by the grid, stores and services

Error categories:
- E-1xxx: Reference and lookup errors
- E-2xxx: Tool invocation errors
- E-4xxx: System/internal errors
"""

from sheetchat.errors.domain import (
    ConflictError,
    DomainError,
    MalformedReference,
    NotFoundError,
    SheetNotFound,
    WorkbookWriteError,
)
from sheetchat.errors.registry import (
    ERROR_REGISTRY,
    ErrorCategory,
    ErrorCode,
    format_error_message,
    get_error,
    get_errors_by_category,
)

__all__ = [
    # Registry
    "ErrorCode",
    "ErrorCategory",
    "ERROR_REGISTRY",
    "get_error",
    "get_errors_by_category",
    "format_error_message",
    # Domain exceptions
    "DomainError",
    "MalformedReference",
    "SheetNotFound",
    "NotFoundError",
    "ConflictError",
    "WorkbookWriteError",
]
