# backend/tutorbook/services/availability_service.py
"""
Availability Service for the tutorbook scheduling core.

Answers "what can a student book with this tutor" by running the slot
generator over the tutor's template and current sessions, and owns the
explicit settings action that replaces a template.

The query is advisory: reads are not linearizable with commits, so the
booking path re-validates everything under lock.
"""

from datetime import date, datetime, time, timedelta
from typing import Callable, Iterable, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    NotFoundException,
    RepositoryException,
    UpstreamUnavailableException,
    ValidationException,
)
from ..core.timezone_utils import get_system_timezone, localize, minutes_since_midnight, now_utc
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.availability_repository import AvailabilityRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.session_repository import SessionRepository
from ..repositories.tutor_repository import TutorRepository
from ..schemas.availability import DurationOptionsResponse, SlotQueryResult, WeeklyAvailability
from .base import BaseService
from .slot_generator import fits_template, generate_slots, valid_durations


class AvailabilityService(BaseService):
    """Slot queries and weekly-template maintenance."""

    def __init__(
        self,
        db: Session,
        availability_repository: Optional[AvailabilityRepository] = None,
        session_repository: Optional[SessionRepository] = None,
        tutor_repository: Optional[TutorRepository] = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        super().__init__(db)
        self.availability_repository = (
            availability_repository or RepositoryFactory.create_availability_repository(db)
        )
        self.session_repository = session_repository or RepositoryFactory.create_session_repository(db)
        self.tutor_repository = tutor_repository or RepositoryFactory.create_tutor_repository(db)
        self.tz = get_system_timezone()
        self._clock = clock

    def _today(self) -> date:
        return self._clock().astimezone(self.tz).date()

    def _require_tutor(self, tutor_id: str) -> None:
        if self.tutor_repository.get_by_id(tutor_id) is None:
            raise NotFoundException(f"Tutor {tutor_id} not found", details={"tutor_id": tutor_id})

    def _load_template(self, tutor_id: str) -> Optional[WeeklyAvailability]:
        try:
            return self.availability_repository.get_availability(tutor_id)
        except RepositoryException as exc:
            raise UpstreamUnavailableException(
                "Availability is temporarily unavailable", details={"tutor_id": tutor_id}
            ) from exc

    @BaseService.measure_operation("get_bookable_slots")
    def get_bookable_slots(
        self,
        tutor_id: str,
        window_start: Optional[date] = None,
        window_days: Optional[int] = None,
        granularity_minutes: Optional[int] = None,
    ) -> SlotQueryResult:
        """
        Bookable units for ``tutor_id`` over a rolling window.

        Args:
            tutor_id: Tutor to query
            window_start: First local date (defaults to today in the system zone)
            window_days: Window length (defaults to BOOKING_WINDOW_DAYS, capped at
                MAX_BOOKING_WINDOW_DAYS)
            granularity_minutes: Unit length (defaults to SLOT_GRANULARITY_MINUTES)

        Returns:
            SlotQueryResult; ``has_availability`` is False when no template exists,
            ``fully_booked`` is True when a template exists but no unit is open

        Raises:
            ValidationException: non-positive window or granularity
            UpstreamUnavailableException: the template or booked sessions could not be read
        """
        start_day = window_start or self._today()
        days = settings.booking_window_days if window_days is None else window_days
        granularity = (
            settings.slot_granularity_minutes if granularity_minutes is None else granularity_minutes
        )
        if days < 1:
            raise ValidationException("window_days must be at least 1", details={"window_days": days})
        if granularity < 1:
            raise ValidationException(
                "granularity_minutes must be at least 1",
                details={"granularity_minutes": granularity},
            )
        if days > settings.max_booking_window_days:
            self.logger.debug(
                "Capping availability window for tutor %s from %s to %s days",
                tutor_id,
                days,
                settings.max_booking_window_days,
            )
            days = settings.max_booking_window_days

        template = self._load_template(tutor_id)
        if template is None or template.is_empty():
            return SlotQueryResult(
                tutor_id=tutor_id,
                window_start=start_day,
                window_days=days,
                granularity_minutes=granularity,
                timezone=self.tz.zone,
                has_availability=False,
                fully_booked=False,
                slots=[],
            )

        range_start = localize(start_day, time.min, self.tz)
        range_end = localize(start_day + timedelta(days=days), time.min, self.tz)
        try:
            booked = self.session_repository.get_booked_sessions(tutor_id, range_start, range_end)
        except RepositoryException as exc:
            # An under-blocked calendar would invite double-booking attempts.
            raise UpstreamUnavailableException(
                "Booked sessions could not be loaded", details={"tutor_id": tutor_id}
            ) from exc

        slots = generate_slots(
            template=template,
            booked=booked,
            window_start=start_day,
            window_days=days,
            tutor_id=tutor_id,
            granularity_minutes=granularity,
            tz=self.tz,
        )
        open_count = sum(1 for slot in slots if slot.available)
        prometheus_metrics.record_slots_generated(open_count, len(slots) - open_count)

        return SlotQueryResult(
            tutor_id=tutor_id,
            window_start=start_day,
            window_days=days,
            granularity_minutes=granularity,
            timezone=self.tz.zone,
            has_availability=True,
            fully_booked=open_count == 0,
            slots=slots,
        )

    def get_weekly_availability(self, tutor_id: str) -> WeeklyAvailability:
        """The tutor's current template (empty when none was published)."""
        self._require_tutor(tutor_id)
        return self._load_template(tutor_id) or WeeklyAvailability()

    @BaseService.measure_operation("update_weekly_availability")
    def update_weekly_availability(
        self, tutor_id: str, template: WeeklyAvailability
    ) -> WeeklyAvailability:
        """Replace the tutor's weekly template. Existing sessions are left untouched."""
        self._require_tutor(tutor_id)
        with self.transaction():
            self.availability_repository.upsert(tutor_id, template)
        self.log_operation(
            "update_weekly_availability",
            tutor_id=tutor_id,
            days=[d for d, ranges in template.to_storage().items() if ranges],
        )
        return template

    def get_valid_durations(
        self,
        tutor_id: str,
        day: date,
        start: time,
        duration_options: Optional[Iterable[int]] = None,
    ) -> DurationOptionsResponse:
        """Session lengths that fit inside one template range when starting at ``start`` on ``day``."""
        options = list(settings.session_duration_options if duration_options is None else duration_options)
        template = self._load_template(tutor_id)
        durations = (
            valid_durations(template, day, minutes_since_midnight(start), options)
            if template is not None
            else []
        )
        return DurationOptionsResponse(
            tutor_id=tutor_id,
            date=day,
            start=start,
            durations=durations,
            requested=sorted(set(options)),
        )

    def fits_template(
        self, template: WeeklyAvailability, starts_at: datetime, ends_at: datetime
    ) -> bool:
        return fits_template(template, starts_at, ends_at, self.tz)
