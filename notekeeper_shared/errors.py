"""
Shared error handling for Notekeeper.

Every failure a coordinator can report is a subclass of
:class:`NotekeeperException`. Each kind carries its own code and HTTP status
so the HTTP layer can tell "retry with a different id" apart from "the
server had an internal error".
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

from .logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class NotekeeperException(Exception):
    """Base exception for Notekeeper services."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            trace_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class InvalidIdentifierError(NotekeeperException):
    """Identifier does not have the shape the store issues."""

    status_code = 400

    def __init__(self, identifier: str, message: str = "Invalid / bad ID format", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_IDENTIFIER", message, {"id": identifier, **(details or {})})


class NotFoundError(NotekeeperException):
    """Well-formed identifier or query matched nothing."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class ConflictError(NotekeeperException):
    """Uniqueness precondition violated."""

    status_code = 409

    def __init__(self, message: str = "Conflict", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFLICT", message, details)


class ValidationError(NotekeeperException):
    """Payload missing fields required by the operation."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_FAILED", message, details)


class AuthenticationError(NotekeeperException):
    """Login credentials did not match."""

    status_code = 401

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTH_FAILED", message, details)


class OperationFailedError(NotekeeperException):
    """Unexpected failure in the store, the cache or the hashing subsystem."""

    status_code = 500

    def __init__(self, message: str = "Operation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("OPERATION_FAILED", message, details)
