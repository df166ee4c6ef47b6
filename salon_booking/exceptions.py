# salon_booking/exceptions.py
"""
Domain exceptions for the scheduling and queue engine.

Services raise these; the API layer turns them into HTTP responses through
``to_http_exception``. Nothing here is retried by the core.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class InvalidInput(DomainException):
    """Malformed request: unaligned start, bad duration, inactive professional..."""

    status_code = 422


class NotFound(DomainException):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(DomainException):
    """The candidate interval overlaps a closure or another appointment."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, cause: str, source_id: Optional[int], message: Optional[str] = None) -> None:
        self.cause = cause
        self.source_id = source_id
        super().__init__(
            message or f"Requested time conflicts with {cause.replace('_', ' ')}",
            details={"cause": cause, "source_id": source_id},
        )


class InvalidTransition(DomainException):
    """Illegal status change; the entity is left untouched."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot move from '{current}' to '{requested}'",
            details={"current": current, "requested": requested},
        )


class PersistenceFailure(DomainException):
    """The atomic commit failed; the caller may retry the whole request."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class DispatchFailure(DomainException):
    """Raised by messaging dispatchers. Handled inside the Notification Scheduler."""
