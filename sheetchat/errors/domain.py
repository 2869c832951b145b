"""Typed domain exceptions for tool results and API error mapping.

These exceptions provide stronger contract guarantees than string-based
error message matching. Tool dispatch converts any DomainError into a
failed tool result carrying ``code``; routes catch specific exception
types to return appropriate HTTP status codes.

Usage:
    # In service layer
    raise NotFoundError("Thread", thread_id)

    # In route handler
    try:
        store.delete_thread(thread_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
"""

from sheetchat.errors.registry import format_error_message


class DomainError(Exception):
    """Base exception for all domain errors."""

    code = "E-4001"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class MalformedReference(DomainError):
    """A spreadsheet address or mention cannot be parsed. Maps to HTTP 400."""

    code = "E-1001"

    def __init__(self, reference: str, reason: str | None = None) -> None:
        message = format_error_message(self.code, reference=reference)
        if reason:
            message = f"{message} {reason}"
        super().__init__(message)
        self.reference = reference


class SheetNotFound(DomainError):
    """Referenced sheet is absent from the workbook. Maps to HTTP 404."""

    code = "E-1002"

    def __init__(self, sheet: str) -> None:
        super().__init__(format_error_message(self.code, sheet=sheet))
        self.sheet = sheet


class NotFoundError(DomainError):
    """Resource was not found. Maps to HTTP 404."""

    code = "E-1003"

    def __init__(self, resource_type: str, identifier: str) -> None:
        super().__init__(
            format_error_message(
                self.code, resource_type=resource_type, identifier=identifier
            )
        )
        self.resource_type = resource_type
        self.identifier = identifier


class ConflictError(DomainError):
    """Resource is in a conflicting state (e.g. already resolved). Maps to HTTP 409."""

    code = "E-1004"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class WorkbookWriteError(DomainError):
    """The workbook file could not be saved; its previous contents are kept."""

    code = "E-4002"

    def __init__(self, path: object, details: str) -> None:
        super().__init__(format_error_message(self.code, path=path, details=details))
        self.path = path
