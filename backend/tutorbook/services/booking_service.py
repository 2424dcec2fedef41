# backend/tutorbook/services/booking_service.py
"""
Booking Service for the tutorbook scheduling core.

Turns a selected slot into a confirmed session without double-booking the
tutor. Commit order:

1. validate the request shape
2. lock the tutor row, then re-check the weekly limit and the slot
   against current data
3. insert under the store's overlap guard; a rejection is a SlotConflict
4. after commit, run post-commit hooks (their failures never undo the booking)

The same path serves reschedules, excluding the session being moved from
both the overlap and the weekly-limit checks.
"""

from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import SESSION_OVERLAP_CONSTRAINT
from ..core.enums import SessionStatus
from ..core.exceptions import (
    BusinessRuleException,
    ConstraintViolation,
    NoAvailabilityConfiguredException,
    NotFoundException,
    RepositoryException,
    SlotConflictException,
    UpstreamUnavailableException,
    ValidationException,
    WeeklyLimitExceededException,
)
from ..core.timezone_utils import get_system_timezone, now_utc, to_utc, to_zone
from ..models.session import TutoringSession
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.availability_repository import AvailabilityRepository
from ..repositories.base_repository import is_deadlock
from ..repositories.factory import RepositoryFactory
from ..repositories.session_repository import SessionRepository
from ..repositories.tutor_repository import TutorRepository
from .base import BaseService
from .slot_generator import fits_template
from .weekly_limit import WeeklyLimitGuard

PostCommitHook = Callable[[TutoringSession], None]

GENERIC_CONFLICT_MESSAGE = "This time slot is no longer available. Please choose another."
OUTSIDE_AVAILABILITY_MESSAGE = "The tutor is not available at the requested time."


class BookingService(BaseService):
    """Booking commit, reschedule and session lifecycle."""

    def __init__(
        self,
        db: Session,
        session_repository: Optional[SessionRepository] = None,
        tutor_repository: Optional[TutorRepository] = None,
        availability_repository: Optional[AvailabilityRepository] = None,
        weekly_limit_guard: Optional[WeeklyLimitGuard] = None,
        post_commit_hooks: Optional[List[PostCommitHook]] = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        super().__init__(db)
        self.session_repository = session_repository or RepositoryFactory.create_session_repository(db)
        self.tutor_repository = tutor_repository or RepositoryFactory.create_tutor_repository(db)
        self.availability_repository = (
            availability_repository or RepositoryFactory.create_availability_repository(db)
        )
        self.tz = get_system_timezone()
        self.weekly_limit_guard = weekly_limit_guard or WeeklyLimitGuard(
            self.session_repository, self.tutor_repository, tz=self.tz
        )
        self.post_commit_hooks: List[PostCommitHook] = list(post_commit_hooks or [])
        self._clock = clock

    def add_post_commit_hook(self, hook: PostCommitHook) -> None:
        self.post_commit_hooks.append(hook)

    # Validation helpers

    def _validate_interval(self, start_time: datetime, end_time: datetime) -> Tuple[datetime, datetime]:
        """
        Normalise to UTC and check the request shape.

        Naive values are read as wall-clock times in the system zone.
        """
        starts_at = to_utc(start_time, self.tz)
        ends_at = to_utc(end_time, self.tz)

        if ends_at <= starts_at:
            raise ValidationException(
                "Session end time must be after its start time",
                details={"start_time": starts_at.isoformat(), "end_time": ends_at.isoformat()},
            )
        if to_zone(starts_at, self.tz).date() != to_zone(ends_at, self.tz).date():
            raise ValidationException(
                "A session must start and end on the same day",
                details={"start_time": starts_at.isoformat(), "end_time": ends_at.isoformat()},
            )

        duration = ends_at - starts_at
        minutes, remainder = divmod(duration, timedelta(minutes=1))
        allowed = sorted(settings.session_duration_options)
        if remainder or minutes not in allowed:
            raise ValidationException(
                f"Session duration must be one of {allowed} minutes",
                details={"duration_minutes": duration.total_seconds() / 60, "allowed": allowed},
            )

        if starts_at < self._clock():
            raise ValidationException(
                "Cannot book a session in the past",
                details={"start_time": starts_at.isoformat()},
            )
        return starts_at, ends_at

    def _ensure_slot_open(
        self,
        tutor_id: str,
        starts_at: datetime,
        ends_at: datetime,
        exclude_session_id: Optional[str] = None,
    ) -> None:
        template = self.availability_repository.get_availability(tutor_id)
        if template is None or template.is_empty():
            raise NoAvailabilityConfiguredException(tutor_id)
        if not fits_template(template, starts_at, ends_at, self.tz):
            raise SlotConflictException(
                OUTSIDE_AVAILABILITY_MESSAGE,
                details={"tutor_id": tutor_id, "reason": "outside_availability"},
            )
        overlapping = self.session_repository.find_overlapping(
            tutor_id, starts_at, ends_at, exclude_session_id=exclude_session_id
        )
        if overlapping:
            raise SlotConflictException(
                details={
                    "tutor_id": tutor_id,
                    "reason": "overlap",
                    "conflicting_session_ids": [s.id for s in overlapping],
                }
            )

    def _translate_write_failure(
        self, exc: RepositoryException, tutor_id: str, starts_at: datetime, ends_at: datetime
    ) -> Exception:
        """Map a store rejection to the error the caller can act on."""
        details = {
            "tutor_id": tutor_id,
            "start_time": starts_at.isoformat(),
            "end_time": ends_at.isoformat(),
        }
        if isinstance(exc, ConstraintViolation):
            if exc.constraint_name == SESSION_OVERLAP_CONSTRAINT:
                return SlotConflictException(GENERIC_CONFLICT_MESSAGE, details={**details, "reason": "overlap"})
            return ValidationException(
                "Session rejected by a data constraint",
                details={**details, "constraint": exc.constraint_name},
            )
        if is_deadlock(exc.__cause__ or exc):
            return SlotConflictException(GENERIC_CONFLICT_MESSAGE, details={**details, "reason": "deadlock"})
        return UpstreamUnavailableException("Session store is temporarily unavailable", details=details)

    def _run_post_commit_hooks(self, session: TutoringSession) -> None:
        for hook in self.post_commit_hooks:
            hook_name = getattr(hook, "__name__", hook.__class__.__name__)
            try:
                hook(session)
            except Exception as exc:
                # The booking is already durable; hooks are best effort.
                self.logger.error(
                    "Post-commit hook %s failed for session %s: %s",
                    hook_name,
                    session.id,
                    exc,
                    exc_info=True,
                    extra={"session_id": session.id, "hook": hook_name},
                )
                prometheus_metrics.inc_post_commit_hook_failure(hook_name)

    # Operations

    @BaseService.measure_operation("commit_booking")
    def commit_booking(
        self,
        tutor_id: str,
        student_id: str,
        start_time: datetime,
        end_time: datetime,
        course_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> TutoringSession:
        """
        Book ``[start_time, end_time)`` with ``tutor_id`` for ``student_id``.

        Returns:
            The committed session (status scheduled, payment pending)

        Raises:
            ValidationException: malformed interval, disallowed duration or past start
            NotFoundException: unknown tutor
            NoAvailabilityConfiguredException: tutor has no template
            WeeklyLimitExceededException: tutor's week is full
            SlotConflictException: interval outside availability or taken concurrently
        """
        try:
            starts_at, ends_at = self._validate_interval(start_time, end_time)
        except ValidationException:
            prometheus_metrics.inc_booking_commit("invalid")
            raise

        try:
            with self.transaction():
                tutor = self.tutor_repository.lock_tutor(tutor_id)
                if tutor is None:
                    raise NotFoundException(f"Tutor {tutor_id} not found", details={"tutor_id": tutor_id})
                self.weekly_limit_guard.ensure_below_limit(tutor_id, starts_at)
                self._ensure_slot_open(tutor_id, starts_at, ends_at)
                try:
                    session = self.session_repository.insert_session(
                        tutor_id=tutor_id,
                        student_id=student_id,
                        start_time=starts_at,
                        end_time=ends_at,
                        status=SessionStatus.SCHEDULED.value,
                        course_id=course_id,
                        notes=notes,
                    )
                except RepositoryException as exc:
                    raise self._translate_write_failure(exc, tutor_id, starts_at, ends_at) from exc
        except SlotConflictException:
            prometheus_metrics.inc_booking_commit("slot_conflict")
            raise
        except WeeklyLimitExceededException:
            prometheus_metrics.inc_booking_commit("weekly_limit")
            raise
        except RepositoryException as exc:
            raise UpstreamUnavailableException(
                "Session store is temporarily unavailable", details={"tutor_id": tutor_id}
            ) from exc

        prometheus_metrics.inc_booking_commit("committed")
        self.log_operation(
            "commit_booking",
            session_id=session.id,
            tutor_id=tutor_id,
            student_id=student_id,
            start_time=starts_at.isoformat(),
        )
        self._run_post_commit_hooks(session)
        return session

    @BaseService.measure_operation("reschedule_session")
    def reschedule_session(
        self, session_id: str, start_time: datetime, end_time: datetime
    ) -> TutoringSession:
        """
        Move a scheduled session to a new interval.

        The session's own current interval does not block the move, and it is
        not counted twice toward the weekly limit.
        """
        starts_at, ends_at = self._validate_interval(start_time, end_time)

        try:
            with self.transaction():
                session = self._get_for_update(session_id)
                if session.status != SessionStatus.SCHEDULED.value:
                    raise BusinessRuleException(
                        f"Only scheduled sessions can be rescheduled (status: {session.status})",
                        details={"session_id": session_id, "status": session.status},
                    )
                tutor_id = session.tutor_id
                self.tutor_repository.lock_tutor(tutor_id)
                self.weekly_limit_guard.ensure_below_limit(
                    tutor_id, starts_at, exclude_session_id=session_id
                )
                self._ensure_slot_open(tutor_id, starts_at, ends_at, exclude_session_id=session_id)
                previous = (session.start_time, session.end_time)
                session.rescheduled_at = self._clock()
                try:
                    self.session_repository.update_session_time(session, starts_at, ends_at)
                except RepositoryException as exc:
                    raise self._translate_write_failure(exc, tutor_id, starts_at, ends_at) from exc
        except RepositoryException as exc:
            raise UpstreamUnavailableException(
                "Session store is temporarily unavailable", details={"session_id": session_id}
            ) from exc

        self.log_operation(
            "reschedule_session",
            session_id=session_id,
            previous_start=previous[0].isoformat(),
            start_time=starts_at.isoformat(),
        )
        return session

    @BaseService.measure_operation("cancel_session")
    def cancel_session(self, session_id: str, reason: Optional[str] = None) -> TutoringSession:
        """Cancel a scheduled session, freeing its slot."""
        return self._transition(session_id, SessionStatus.CANCELLED, reason=reason)

    @BaseService.measure_operation("complete_session")
    def complete_session(self, session_id: str) -> TutoringSession:
        return self._transition(session_id, SessionStatus.COMPLETED)

    def get_session(self, session_id: str) -> TutoringSession:
        session = self.session_repository.get_by_id(session_id)
        if session is None:
            raise NotFoundException(f"Session {session_id} not found", details={"session_id": session_id})
        return session

    def _get_for_update(self, session_id: str) -> TutoringSession:
        session = self.session_repository.get_for_update(session_id)
        if session is None:
            raise NotFoundException(f"Session {session_id} not found", details={"session_id": session_id})
        return session

    def _transition(
        self, session_id: str, target: SessionStatus, reason: Optional[str] = None
    ) -> TutoringSession:
        with self.transaction():
            session = self._get_for_update(session_id)
            current = SessionStatus(session.status)
            if not current.can_transition_to(target):
                raise BusinessRuleException(
                    f"Cannot move a {current.value} session to {target.value}",
                    details={"session_id": session_id, "status": current.value, "target": target.value},
                )
            session.transition_to(target, reason=reason)
            self.session_repository.flush()

        self.log_operation(f"{target.value}_session", session_id=session_id, reason=reason)
        return session
