# backend/tutorbook/models/session.py
"""
Tutoring session model.

A session is a confirmed booking of one tutor by one student over
``[start_time, end_time)``. Rows are never deleted; status only moves
forward (scheduled -> completed | cancelled).

Architecture: the no-double-booking rule is enforced by the store itself,
not by application checks. PostgreSQL gets a GiST exclusion constraint on
``(tutor_id, tstzrange(start_time, end_time))``; SQLite gets BEFORE
INSERT/UPDATE triggers with the same predicate. Both only consider
scheduled/completed rows, so cancelled sessions free their slot.
"""

from datetime import datetime, timezone
import logging
from typing import Optional

from sqlalchemy import DDL, CheckConstraint, Column, ForeignKey, Index, String, Text, event
from sqlalchemy.orm import relationship

from ..core.constants import SESSION_OVERLAP_CONSTRAINT
from ..core.enums import PaymentStatus, SessionStatus
from ..core.ulid_helper import generate_ulid
from ..database import Base
from .types import UTCDateTime

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class TutoringSession(Base):
    """Persisted booking between a student and a tutor."""

    __tablename__ = "tutoring_sessions"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)

    tutor_id = Column(String(26), ForeignKey("tutor_profiles.id"), nullable=False)
    student_id = Column(String(26), nullable=False, index=True)

    start_time = Column(UTCDateTime(), nullable=False)
    end_time = Column(UTCDateTime(), nullable=False)

    status = Column(String(20), nullable=False, default=SessionStatus.SCHEDULED.value, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)

    course_id = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(UTCDateTime(), nullable=False, default=_now_utc)
    updated_at = Column(UTCDateTime(), nullable=True, onupdate=_now_utc)
    completed_at = Column(UTCDateTime(), nullable=True)
    cancelled_at = Column(UTCDateTime(), nullable=True)
    rescheduled_at = Column(UTCDateTime(), nullable=True)
    cancellation_reason = Column(String(255), nullable=True)

    tutor = relationship("TutorProfile")
    payment_intents = relationship(
        "PaymentIntentRecord",
        back_populates="session",
        order_by="PaymentIntentRecord.created_at",
    )

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_tutoring_sessions_time_order"),
        CheckConstraint(
            "status IN ('scheduled', 'completed', 'cancelled')",
            name="ck_tutoring_sessions_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'processing', 'paid', 'failed', 'refunded')",
            name="ck_tutoring_sessions_payment_status",
        ),
        Index("ix_tutoring_sessions_tutor_start", "tutor_id", "start_time"),
    )

    def __repr__(self) -> str:
        return (
            f"<TutoringSession {self.id}: tutor={self.tutor_id}, student={self.student_id}, "
            f"{self.start_time}-{self.end_time}, status={self.status}>"
        )

    @property
    def session_status(self) -> SessionStatus:
        return SessionStatus(self.status)

    @property
    def is_blocking(self) -> bool:
        """Whether this session occupies the tutor's calendar."""
        return self.session_status in SessionStatus.blocking()

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start_time < end and start < self.end_time

    def transition_to(self, target: SessionStatus, reason: Optional[str] = None) -> None:
        """Move the lifecycle forward; callers validate with can_transition_to first."""
        self.status = target.value
        if target == SessionStatus.CANCELLED:
            self.cancelled_at = _now_utc()
            self.cancellation_reason = reason
        elif target == SessionStatus.COMPLETED:
            self.completed_at = _now_utc()
        logger.info("Session %s moved to %s", self.id, target.value)


_BLOCKING_STATUSES_SQL = "('scheduled', 'completed')"

event.listen(
    TutoringSession.__table__,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)

event.listen(
    TutoringSession.__table__,
    "after_create",
    DDL(
        f"""
        ALTER TABLE tutoring_sessions
          ADD CONSTRAINT {SESSION_OVERLAP_CONSTRAINT}
          EXCLUDE USING gist (
            tutor_id WITH =,
            tstzrange(start_time, end_time, '[)') WITH &&
          )
          WHERE (status IN {_BLOCKING_STATUSES_SQL})
        """
    ).execute_if(dialect="postgresql"),
)

event.listen(
    TutoringSession.__table__,
    "after_create",
    DDL(
        f"""
        CREATE TRIGGER IF NOT EXISTS {SESSION_OVERLAP_CONSTRAINT}_insert
        BEFORE INSERT ON tutoring_sessions
        WHEN NEW.status IN {_BLOCKING_STATUSES_SQL}
        BEGIN
          SELECT RAISE(ABORT, '{SESSION_OVERLAP_CONSTRAINT}')
          WHERE EXISTS (
            SELECT 1 FROM tutoring_sessions s
            WHERE s.tutor_id = NEW.tutor_id
              AND s.status IN {_BLOCKING_STATUSES_SQL}
              AND s.start_time < NEW.end_time
              AND NEW.start_time < s.end_time
          );
        END
        """
    ).execute_if(dialect="sqlite"),
)

event.listen(
    TutoringSession.__table__,
    "after_create",
    DDL(
        f"""
        CREATE TRIGGER IF NOT EXISTS {SESSION_OVERLAP_CONSTRAINT}_update
        BEFORE UPDATE OF start_time, end_time, status, tutor_id ON tutoring_sessions
        WHEN NEW.status IN {_BLOCKING_STATUSES_SQL}
        BEGIN
          SELECT RAISE(ABORT, '{SESSION_OVERLAP_CONSTRAINT}')
          WHERE EXISTS (
            SELECT 1 FROM tutoring_sessions s
            WHERE s.tutor_id = NEW.tutor_id
              AND s.id <> NEW.id
              AND s.status IN {_BLOCKING_STATUSES_SQL}
              AND s.start_time < NEW.end_time
              AND NEW.start_time < s.end_time
          );
        END
        """
    ).execute_if(dialect="sqlite"),
)
