"""
Custom exception classes for unified error handling.
"""

from fastapi import HTTPException, status


class AppBaseError(Exception):
    """Base exception for all application errors."""
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, detail: str | None = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


class ValidationError(AppBaseError):
    """Malformed or empty input, rejected before any upstream call. Never retried."""
    status_code = status.HTTP_400_BAD_REQUEST


class PermissionDeniedError(AppBaseError):
    """Caller's role is not allowed to perform the action."""
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Only instructors can perform this action"):
        super().__init__(message=message)


class NotFoundError(AppBaseError):
    """A course, schedule entry, escalation or announcement does not exist."""
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, identifier: str | int | None = None, detail: str | None = None):
        message = f"{resource} not found" if identifier is None else f"{resource} not found: {identifier}"
        super().__init__(message=message, detail=detail)
        self.resource = resource


class ConflictError(AppBaseError):
    """A uniqueness constraint rejected an insert (e.g. one announcement per course/week)."""
    status_code = status.HTTP_409_CONFLICT


class UpstreamError(AppBaseError):
    """Embedding, text-generation or storage call failed or timed out."""
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, service: str, original_error: str):
        super().__init__(
            message=f"Upstream service '{service}' failed",
            detail=original_error,
        )
        self.service = service


class StorageError(UpstreamError):
    """Raised when a Supabase read/write fails."""

    def __init__(self, operation: str, original_error: str):
        super().__init__(service=f"storage:{operation}", original_error=original_error)


class IngestionError(AppBaseError):
    """Ingestion did not fully succeed.

    `stored` chunks were confirmed written, `unconfirmed` chunks were in flight
    when the call gave up (they may or may not have landed), the rest were not
    written.
    """
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, reason: str, stored: int = 0, total: int = 0, unconfirmed: int = 0):
        super().__init__(
            message=f"Ingestion failed: {reason}",
            detail=f"{stored}/{total} chunks stored, {unconfirmed} unconfirmed",
        )
        self.reason = reason
        self.stored = stored
        self.total = total
        self.unconfirmed = unconfirmed


# ── Utility: convert to HTTPException ────────────────────

def app_error_to_http(error: AppBaseError, status_code: int | None = None) -> HTTPException:
    """Convert an AppBaseError to an HTTPException with consistent JSON body."""
    return HTTPException(
        status_code=status_code or error.status_code,
        detail={
            "error": error.message,
            "detail": error.detail,
            "type": type(error).__name__,
        },
    )
