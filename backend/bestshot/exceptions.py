"""
Best Shot Backend — Custom Exception Hierarchy
================================================

What:  Application-specific exceptions, one per failure class the service
       reports to clients.
How:   Each exception carries a user-facing message and an optional context
       dict. Global handlers in main.py map them to status codes and render a
       structured JSON body. Context is logged server-side and never returned
       unless the handler opts in.

Exception Hierarchy:
    BestShotError (base)
    ├── ValidationError          → 400 Bad Request
    ├── NotFoundError            → 404 Not Found (unknown access code, photo, participant)
    ├── ConflictError            → 409 Conflict
    │   └── BallotStateError     → 409 (operation not allowed in the ballot's state)
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── DatabaseError            → 500 (read failure, generic message)
    │   └── WriteError           → 500 (write failed and was rolled back; retriable)
    ├── ExportError              → 500 (PDF rendering failed)
    └── CircuitBreakerOpenError  → raised by the image fetcher, never reaches HTTP
"""

from typing import Any, Dict, Optional


class BestShotError(Exception):
    """
    Base exception for all Best Shot application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, not returned)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(BestShotError):
    """
    Raised when client input breaks a business rule.

    When:    Submission not confirmed, wrong number of photos, duplicate or
             unknown photo ids, reset not confirmed.
    HTTP:    400 Bad Request
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


class NotFoundError(BestShotError):
    """
    Raised when a requested resource does not exist.

    The access-code lookup is the main source: an unknown code is the
    terminal "not found" view for the participant. The code itself is never
    echoed back.
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


class ConflictError(BestShotError):
    """
    Raised when a request conflicts with the current state of a resource.

    When:    Submitting for a participant who already completed, starting a
             PDF export while another one is running.
    HTTP:    409 Conflict
    """

    def __init__(
        self,
        message: str = "The request conflicts with the current state",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class BallotStateError(ConflictError):
    """Raised by the ballot state machine when an operation is not allowed."""

    def __init__(self, state: str, operation: str):
        super().__init__(
            message=f"Cannot {operation} while the ballot is {state}",
            context={"state": state, "operation": operation},
        )
        self.state = state
        self.operation = operation


class RateLimitExceededError(BestShotError):
    """
    Raised when a client guesses too many unknown access codes.

    HTTP:    429 Too Many Requests, with a Retry-After header
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Too many invalid vote links. Please wait {retry_after} seconds "
            f"and check the link you received."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class DatabaseError(BestShotError):
    """
    Raised when a database read fails.

    The client receives a generic message; query details stay in the logs.
    There is no automatic retry.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class WriteError(DatabaseError):
    """
    Raised when a submission or reset could not be written.

    The transaction has been rolled back, so nothing was persisted and the
    user may simply try again.
    """

    def __init__(
        self,
        message: str = "Saving failed. Nothing was changed; please try again.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ExportError(BestShotError):
    """Raised when the PDF summary cannot be produced."""

    def __init__(
        self,
        message: str = "The PDF export could not be generated.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class CircuitBreakerOpenError(BestShotError):
    """
    Raised when the image host circuit breaker is OPEN.

    The exporter catches it and renders a placeholder for the affected photo.
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Image host is temporarily unavailable after repeated failures. "
            f"Retrying in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time
