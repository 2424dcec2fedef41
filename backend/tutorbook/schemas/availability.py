# backend/tutorbook/schemas/availability.py
"""
Availability schemas.

``WeeklyAvailability`` is the recurring template a tutor publishes;
``BookingSlot`` is one concrete bookable unit derived from it. Slots are
never persisted: they are recomputed from the template and the tutor's
booked sessions on every query.
"""

from datetime import date, datetime, time
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..core.constants import WEEKDAY_KEYS
from ..core.enums import SessionStatus
from ..core.exceptions import FullyBookedException, NoAvailabilityConfiguredException
from .base import StandardizedModel


class AvailabilitySlot(BaseModel):
    """One wall-clock range ``[start, end)`` inside a weekday."""

    model_config = ConfigDict(frozen=True)

    start: time
    end: time

    @model_validator(mode="after")
    def _check_order(self) -> "AvailabilitySlot":
        if self.start >= self.end:
            raise ValueError("Availability range must end after it starts")
        return self

    def to_storage(self) -> dict[str, str]:
        return {"start": self.start.strftime("%H:%M"), "end": self.end.strftime("%H:%M")}


class WeeklyAvailability(BaseModel):
    """
    Recurring weekly template: weekday name -> ordered ranges.

    Unknown keys are ignored and a missing day means no availability that
    day. Ranges within a day are sorted by start and must not overlap;
    touching ranges (10:00-11:00, 11:00-12:00) are allowed.
    """

    model_config = ConfigDict(extra="ignore")

    monday: List[AvailabilitySlot] = Field(default_factory=list)
    tuesday: List[AvailabilitySlot] = Field(default_factory=list)
    wednesday: List[AvailabilitySlot] = Field(default_factory=list)
    thursday: List[AvailabilitySlot] = Field(default_factory=list)
    friday: List[AvailabilitySlot] = Field(default_factory=list)
    saturday: List[AvailabilitySlot] = Field(default_factory=list)
    sunday: List[AvailabilitySlot] = Field(default_factory=list)

    @field_validator(*WEEKDAY_KEYS, mode="before")
    @classmethod
    def _none_is_empty(cls, value: object) -> object:
        return [] if value is None else value

    @field_validator(*WEEKDAY_KEYS)
    @classmethod
    def _normalise_day(cls, ranges: List[AvailabilitySlot]) -> List[AvailabilitySlot]:
        ordered = sorted(ranges, key=lambda r: (r.start, r.end))
        for previous, current in zip(ordered, ordered[1:]):
            if current.start < previous.end:
                raise ValueError(
                    f"Availability ranges overlap: {previous.start:%H:%M}-{previous.end:%H:%M} "
                    f"and {current.start:%H:%M}-{current.end:%H:%M}"
                )
        return ordered

    def for_day(self, day: date) -> List[AvailabilitySlot]:
        """Ranges that apply on ``day`` (by its weekday)."""
        return list(getattr(self, WEEKDAY_KEYS[day.weekday()]))

    def is_empty(self) -> bool:
        return not any(getattr(self, key) for key in WEEKDAY_KEYS)

    def to_storage(self) -> dict[str, list[dict[str, str]]]:
        """JSON-ready form persisted on ``tutor_availability.availability``."""
        return {key: [r.to_storage() for r in getattr(self, key)] for key in WEEKDAY_KEYS}


class BookedSession(BaseModel):
    """Read-only view of a persisted session used for slot blocking."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    tutor_id: str
    start_time: datetime
    end_time: datetime
    status: SessionStatus

    @property
    def is_blocking(self) -> bool:
        return self.status in SessionStatus.blocking()


class BookingSlot(StandardizedModel):
    """One bookable unit of a tutor's calendar."""

    model_config = ConfigDict(frozen=True)

    tutor_id: str
    day: date
    start: time
    end: time
    available: bool
    starts_at: datetime
    ends_at: datetime


class SlotQueryResult(StandardizedModel):
    """Bookable slots for one tutor over a rolling window."""

    tutor_id: str
    window_start: date
    window_days: int
    granularity_minutes: int
    timezone: str
    has_availability: bool
    fully_booked: bool
    slots: List[BookingSlot] = Field(default_factory=list)

    @property
    def available_slots(self) -> List[BookingSlot]:
        return [slot for slot in self.slots if slot.available]

    def raise_for_status(self) -> "SlotQueryResult":
        """Turn the two empty-calendar states into their domain errors."""
        if not self.has_availability:
            raise NoAvailabilityConfiguredException(self.tutor_id)
        if self.fully_booked:
            raise FullyBookedException(
                self.tutor_id, self.window_start.isoformat(), self.window_days
            )
        return self


class DurationOptionsResponse(StandardizedModel):
    tutor_id: str
    date: date
    start: time
    durations: List[int]
    requested: Optional[List[int]] = None
