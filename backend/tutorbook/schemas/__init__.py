"""Pydantic models exchanged between the service layer and the HTTP surface."""

from .availability import (
    AvailabilitySlot,
    BookedSession,
    BookingSlot,
    DurationOptionsResponse,
    SlotQueryResult,
    WeeklyAvailability,
)
from .payment import PaymentIntentCreate, PaymentIntentResult, PaymentStatusResult
from .session import SessionCancel, SessionCreate, SessionReschedule, SessionResponse

__all__ = [
    "AvailabilitySlot",
    "BookedSession",
    "BookingSlot",
    "DurationOptionsResponse",
    "PaymentIntentCreate",
    "PaymentIntentResult",
    "PaymentStatusResult",
    "SessionCancel",
    "SessionCreate",
    "SessionReschedule",
    "SessionResponse",
    "SlotQueryResult",
    "WeeklyAvailability",
]
