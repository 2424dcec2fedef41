# backend/tutorbook/core/exceptions.py
"""
Domain-specific exceptions for the tutorbook scheduling core.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

import math
from typing import Any, Dict, Optional

from fastapi import HTTPException, status

from .enums import ErrorKind

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    kind: Optional[ErrorKind] = None

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

    def http_headers(self) -> Optional[Dict[str, str]]:
        return None

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException carrying the structured error body."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
            headers=self.http_headers(),
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Scheduling and payment errors


class NoAvailabilityConfiguredException(NotFoundException):
    """Tutor has never published a weekly availability template."""

    kind = ErrorKind.NO_AVAILABILITY_CONFIGURED

    def __init__(self, tutor_id: str):
        super().__init__(
            message="This tutor has not set up any availability yet",
            code="NO_AVAILABILITY_CONFIGURED",
            details={"tutor_id": tutor_id},
        )


class FullyBookedException(ConflictException):
    """Template exists but the requested window has no open unit."""

    kind = ErrorKind.FULLY_BOOKED

    def __init__(self, tutor_id: str, window_start: str, window_days: int):
        super().__init__(
            message="This tutor is fully booked for the selected dates",
            code="FULLY_BOOKED",
            details={
                "tutor_id": tutor_id,
                "window_start": window_start,
                "window_days": window_days,
            },
        )


class SlotConflictException(ConflictException):
    """The requested interval overlaps a live session. Pick another slot."""

    kind = ErrorKind.SLOT_CONFLICT

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "This time slot is no longer available. Please choose another.",
            code="SLOT_CONFLICT",
            details=details or {},
        )


class WeeklyLimitExceededException(BusinessRuleException):
    """Booking would push the tutor over their weekly session cap."""

    kind = ErrorKind.WEEKLY_LIMIT_EXCEEDED

    def __init__(self, tutor_id: str, week_start: str, limit: int):
        super().__init__(
            message=f"This tutor has reached their limit of {limit} sessions for that week",
            code="WEEKLY_LIMIT_EXCEEDED",
            details={"tutor_id": tutor_id, "week_start": week_start, "limit": limit},
        )


class RateLimitedException(DomainException):
    """Request throttled; safe to retry after ``retry_after`` seconds."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    kind = ErrorKind.RATE_LIMITED

    def __init__(
        self,
        retry_after: float,
        message: Optional[str] = None,
        *,
        reason: Optional[str] = None,
        is_duplicate: bool = False,
    ):
        self.retry_after = max(0.0, float(retry_after))
        self.reason = reason
        self.is_duplicate = is_duplicate
        details: Dict[str, Any] = {"retry_after": self.retry_after_seconds}
        if reason:
            details["reason"] = reason
        if is_duplicate:
            details["is_duplicate"] = True
        super().__init__(
            message=message or "Too many payment requests. Please wait a moment and try again.",
            code="RATE_LIMITED",
            details=details,
        )

    @property
    def retry_after_seconds(self) -> int:
        """Whole seconds for the Retry-After header (never rounds a wait down to zero)."""
        return int(math.ceil(self.retry_after))

    def http_headers(self) -> Optional[Dict[str, str]]:
        return {"Retry-After": str(self.retry_after_seconds)}


class UpstreamUnavailableException(DomainException):
    """A collaborator (store or payment provider) failed; the answer would be unsafe."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    kind = ErrorKind.UPSTREAM_UNAVAILABLE

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="UPSTREAM_UNAVAILABLE", details=details or {})


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues or query failures.
    """


class ConstraintViolation(RepositoryException):
    """The store rejected a write because of a uniqueness/overlap constraint."""

    def __init__(self, constraint_name: Optional[str], message: str):
        self.constraint_name = constraint_name
        super().__init__(message)
