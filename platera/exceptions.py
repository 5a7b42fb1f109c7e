"""
Platera Backend — Custom Exception Hierarchy
============================================

What:  Application-specific exceptions mapped to HTTP responses.
How:   Each exception carries a user-facing message and an optional context
       dict. Global handlers registered in main.py render them as
       {error, message, details, request_id} with the matching status code.
Who:   Raised by services and dependencies; caught by the global handlers.

Exception Hierarchy:
    PlateraError (base)
    ├── ValidationError          → 400 Bad Request
    ├── AuthenticationError      → 401 Unauthorized
    ├── PermissionDeniedError    → 403 Forbidden
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 409 Conflict
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── DatabaseError            → 500 Internal Server Error
    ├── MediaHostError           → 502 Bad Gateway
    ├── IdentityProviderError    → 503 Service Unavailable
    └── CircuitBreakerOpenError  → 503 Service Unavailable

Context is logged server-side; for 5xx errors it is never returned to clients.
"""

from typing import Any, Dict, Optional


class PlateraError(Exception):
    """
    Base exception for all Platera application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(PlateraError):
    """
    Client input failed a business rule (upload bounds, empty comment, ...).

    Schema-level validation stays with FastAPI's own 422 responses.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(PlateraError):
    """No usable account could be resolved for the request."""

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PermissionDeniedError(PlateraError):
    """The account exists but does not own the resource it tries to change."""

    def __init__(
        self,
        message: str = "You do not have permission to modify this resource",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(PlateraError):
    """
    A requested resource does not exist.

    SQLAlchemy returns None for missing rows; services turn that None into
    this exception so routes stay free of status-code logic.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(PlateraError):
    """A write collided with a uniqueness rule the client can resolve."""

    def __init__(
        self,
        message: str = "The resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(PlateraError):
    """
    A database operation failed unexpectedly.

    The response message is always generic; SQL details stay in the logs.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class MediaHostError(PlateraError):
    """Upload credentials could not be produced for the media host."""

    def __init__(
        self,
        message: str = "Image uploads are temporarily unavailable",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class IdentityProviderError(PlateraError):
    """
    The identity provider failed after all retries.

    Inside account resolution this is caught and logged (the caller is treated
    as unauthenticated); elsewhere it surfaces as 503.
    """

    def __init__(
        self,
        message: str = "The identity service is temporarily unavailable",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class CircuitBreakerOpenError(PlateraError):
    """
    Raised while the identity provider circuit breaker is OPEN.

        CLOSED → failures reach threshold → OPEN (fail fast)
        OPEN → recovery timeout elapses → HALF_OPEN (one trial call)
        HALF_OPEN → success → CLOSED | failure → OPEN
    """

    def __init__(
        self,
        recovery_time: int = 30,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            "The identity service is temporarily unavailable due to repeated failures. "
            f"Please retry in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time


class RateLimitExceededError(PlateraError):
    """Client exceeded the per-IP request window."""

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
