"""
Game Platform Backend: Custom Exception Hierarchy
===================================================

What:  Application-specific exceptions for the error scenarios of every service.
Why:   Each exception maps to one HTTP status code and a stable error code, so
       services can raise business errors without knowing about HTTP.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py and gateway/main.py)
       catch these and return structured JSON error responses.
Who:   Raised by services, dependencies and the gateway proxy.
When:  During request processing when recoverable errors occur.

Exception Hierarchy:
    GamePlatformError (base)                 → 500
    ├── ValidationError                      → 400 Bad Request
    ├── AuthenticationError                  → 401 Unauthorized
    ├── ForbiddenError                       → 403 Forbidden
    ├── NotFoundError                        → 404 Not Found
    ├── ConflictError                        → 409 Conflict
    ├── RateLimitExceededError               → 429 Too Many Requests
    ├── DatabaseError                        → 500 Internal Server Error
    ├── UpstreamServiceError                 → 502 Bad Gateway
    ├── CircuitBreakerOpenError              → 503 Service Unavailable
    ├── UpstreamTimeoutError                 → 504 Gateway Timeout
    └── NotificationDeliveryError            → 502 (handled internally)
"""

from typing import Any, Dict, Optional


class GamePlatformError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:      User-facing error description (safe to return in API response)
        context:      Additional info; returned as `details` for client errors,
                      logged only for server errors
        status_code:  HTTP status used by the global handler
        error_code:   Machine-readable code used in the response body
    """

    status_code = 500
    error_code = "internal_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(GamePlatformError):
    """
    Raised when client input breaks a business rule.

    Schema-level problems are still reported by FastAPI as 422; this one is
    for rules only the service layer can check (password policy, sending a
    friend request to yourself, ...).
    """

    status_code = 400
    error_code = "validation_error"

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


class AuthenticationError(GamePlatformError):
    """Missing, malformed, expired or revoked credentials."""

    status_code = 401
    error_code = "authentication_error"

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ForbiddenError(GamePlatformError):
    """The caller is authenticated but may not perform this action."""

    status_code = 403
    error_code = "forbidden"

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(GamePlatformError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for missing records; services convert that into
    this exception so the handler can answer 404.
    """

    status_code = 404
    error_code = "not_found"

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


class ConflictError(GamePlatformError):
    """The request conflicts with current state (duplicate e-mail, second review, ...)."""

    status_code = 409
    error_code = "conflict"

    def __init__(
        self,
        message: str = "The request conflicts with the current state of the resource",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(GamePlatformError):
    """
    Raised when a caller exceeds a rate limit.

    Response includes a Retry-After header with `retry_after` seconds.
    """

    status_code = 429
    error_code = "rate_limit_exceeded"

    def __init__(
        self,
        retry_after: int = 60,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = message or (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class DatabaseError(GamePlatformError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic; details are
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


class UpstreamServiceError(GamePlatformError):
    """An upstream call failed after all retries (network error or no usable response)."""

    status_code = 502
    error_code = "bad_gateway"

    def __init__(
        self,
        service: str = "upstream",
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["service"] = service
        super().__init__(
            message=message or f"The {service} service could not be reached",
            context=ctx,
        )
        self.service = service


class CircuitBreakerOpenError(GamePlatformError):
    """
    Raised when a circuit breaker is in OPEN state.

    How circuit breaker works:
        CLOSED (normal) → failures counted inside the monitoring period
        → threshold reached → OPEN (reject calls for recovery_time seconds)
        → recovery time elapsed → HALF-OPEN (allow one test call)
        → test succeeds → CLOSED / test fails → OPEN again
    """

    status_code = 503
    error_code = "service_unavailable"

    def __init__(
        self,
        service: str = "upstream",
        recovery_time: int = 30,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"The {service} service is temporarily unavailable due to repeated failures. "
            f"Retry in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["service"] = service
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.service = service
        self.recovery_time = recovery_time


class UpstreamTimeoutError(GamePlatformError):
    """An upstream call exceeded the configured proxy timeout."""

    status_code = 504
    error_code = "gateway_timeout"

    def __init__(
        self,
        service: str = "upstream",
        timeout: Optional[float] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["service"] = service
        if timeout is not None:
            ctx["timeout"] = timeout
        super().__init__(message=f"The {service} service did not respond in time", context=ctx)
        self.service = service


class NotificationDeliveryError(GamePlatformError):
    """
    E-mail delivery failed after all retries.

    Raised by the notification sender and caught by notification_service:
    the in-app notification is still stored, so this never reaches a client.
    """

    status_code = 502
    error_code = "delivery_failed"

    def __init__(
        self,
        message: str = "Notification delivery failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
