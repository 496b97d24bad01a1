"""
DeenVerse Backend: Custom Exception Hierarchy
==============================================

What:  Application-specific exceptions for the error taxonomy of the API.
How:   Each exception carries a user-facing message and an optional context
       dict. Global handlers (registered in main.py) map each class to an
       HTTP status and render the `{success: false, ...}` envelope.
Who:   Raised by services and auth dependencies; caught by global handlers.

Exception Hierarchy:
    DeenVerseError (base)
    ├── InvalidOperationError   → 400 Bad Request (malformed / self-referential)
    ├── ConflictError           → 400 Bad Request (state invariant violated)
    ├── UnauthenticatedError    → 401 Unauthorized
    ├── ForbiddenError          → 403 Forbidden (role / ownership guard)
    ├── NotFoundError           → 404 Not Found
    └── DatabaseError           → 500 Internal Server Error

None of these are transient: the server never retries them.
"""

from typing import Any, Dict, Optional


class DeenVerseError(Exception):
    """
    Base exception for all DeenVerse application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, returned only for 4xx details)
    """

    status_code = 500
    error_code = "server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class InvalidOperationError(DeenVerseError):
    """
    Raised when a request is malformed or self-referential.

    When:    Connecting to or following yourself, registering as admin,
             sending a field the operation does not accept.
    HTTP:    400 Bad Request
    """

    status_code = 400
    error_code = "invalid_operation"

    def __init__(
        self,
        message: str = "This operation is not allowed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class ConflictError(DeenVerseError):
    """
    Raised when an operation would break a state invariant.

    When:    A connection for the pair is already pending/accepted, an email
             is already registered.
    HTTP:    400 Bad Request (the API contract reports conflicts as 400)
    """

    status_code = 400
    error_code = "conflict"

    def __init__(
        self,
        message: str = "The request conflicts with the current state",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class UnauthenticatedError(DeenVerseError):
    """Missing, unknown or revoked bearer token. HTTP 401."""

    status_code = 401
    error_code = "unauthenticated"

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ForbiddenError(DeenVerseError):
    """
    Raised when an authenticated account lacks the role for an operation.

    HTTP:    403 Forbidden
    """

    status_code = 403
    error_code = "forbidden"

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(DeenVerseError):
    """
    Raised when a requested record does not exist or is not accessible
    to the caller.

    When:    Unknown account, unverified teacher, a connection request that is
             not pending or not addressed to the caller.
    HTTP:    404 Not Found

    A custom message replaces the generated one when the default wording
    would leak why the record is inaccessible.
    """

    status_code = 404
    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"The requested {resource} was not found"
            if resource_id:
                message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class DatabaseError(DeenVerseError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error

    Security Note:
        The message returned to the client is always generic. Details are
        logged server-side only.
    """

    status_code = 500
    error_code = "server_error"

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
