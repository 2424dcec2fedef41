# backend/tutorbook/schemas/session.py
"""Request/response schemas for tutoring sessions."""

from datetime import datetime
from typing import Optional

from pydantic import Field, model_validator

from ..core.constants import MAX_NOTES_LENGTH, MAX_REASON_LENGTH
from ..core.enums import PaymentStatus, SessionStatus
from .base import StandardizedModel, StrictRequestModel


class _SessionInterval(StrictRequestModel):
    start_time: datetime
    end_time: datetime

    @model_validator(mode="after")
    def _check_interval(self):  # type: ignore[no-untyped-def]
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class SessionCreate(_SessionInterval):
    """
    Booking submission.

    Naive datetimes are read as wall-clock times in the system timezone.
    """

    tutor_id: str = Field(..., min_length=1, max_length=26)
    student_id: str = Field(..., min_length=1, max_length=26)
    course_id: Optional[str] = Field(None, max_length=64)
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)


class SessionReschedule(_SessionInterval):
    """New interval for an existing scheduled session."""


class SessionCancel(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=MAX_REASON_LENGTH)


class SessionResponse(StandardizedModel):
    id: str
    tutor_id: str
    student_id: str
    start_time: datetime
    end_time: datetime
    status: SessionStatus
    payment_status: PaymentStatus
    course_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    rescheduled_at: Optional[datetime] = None
