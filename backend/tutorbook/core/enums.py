# backend/tutorbook/core/enums.py
"""
Core enums for the tutorbook scheduling core.

String-valued so they serialise directly into JSON payloads and
database columns.
"""

from enum import Enum
from typing import FrozenSet


class SessionStatus(str, Enum):
    """Tutoring session lifecycle. Transitions move forward only."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def blocking(cls) -> FrozenSet["SessionStatus"]:
        """Statuses that occupy the tutor's calendar."""
        return frozenset({cls.SCHEDULED, cls.COMPLETED})

    def can_transition_to(self, target: "SessionStatus") -> bool:
        return target in _SESSION_TRANSITIONS.get(self, frozenset())


_SESSION_TRANSITIONS = {
    SessionStatus.SCHEDULED: frozenset({SessionStatus.COMPLETED, SessionStatus.CANCELLED}),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.CANCELLED: frozenset(),
}


class PaymentStatus(str, Enum):
    """Payment state of a session as seen by this system."""

    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class ErrorKind(str, Enum):
    """Error categories a caller can act on."""

    NO_AVAILABILITY_CONFIGURED = "NoAvailabilityConfigured"
    FULLY_BOOKED = "FullyBooked"
    SLOT_CONFLICT = "SlotConflict"
    WEEKLY_LIMIT_EXCEEDED = "WeeklyLimitExceeded"
    RATE_LIMITED = "RateLimited"
    UPSTREAM_UNAVAILABLE = "UpstreamUnavailable"
