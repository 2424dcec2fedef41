# backend/tutorbook/repositories/session_repository.py
"""
Session Repository for the tutorbook scheduling core.

All overlap predicates use half-open intervals: ``[a, b)`` and ``[c, d)``
overlap iff ``a < d and c < b``. Only scheduled/completed sessions block.
"""

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import and_, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.constants import SESSION_OVERLAP_CONSTRAINT
from ..core.enums import SessionStatus
from ..core.exceptions import RepositoryException
from ..models.session import TutoringSession
from ..schemas.availability import BookedSession
from .base_repository import BaseRepository

_BLOCKING = [status.value for status in SessionStatus.blocking()]


class SessionRepository(BaseRepository[TutoringSession]):
    """Data access for tutoring sessions."""

    known_constraints = (SESSION_OVERLAP_CONSTRAINT,)

    def __init__(self, db: Session):
        super().__init__(db, TutoringSession)

    def _blocking_for_tutor(self, tutor_id: str) -> Query:
        return self.db.query(TutoringSession).filter(
            TutoringSession.tutor_id == tutor_id,
            TutoringSession.status.in_(_BLOCKING),
        )

    def get_booked_sessions(
        self, tutor_id: str, range_start: datetime, range_end: datetime
    ) -> List[BookedSession]:
        """
        Scheduled/completed sessions of ``tutor_id`` intersecting ``[range_start, range_end)``.

        Ordered by start time.
        """
        try:
            rows = (
                self._blocking_for_tutor(tutor_id)
                .filter(
                    and_(
                        TutoringSession.start_time < range_end,
                        TutoringSession.end_time > range_start,
                    )
                )
                .order_by(TutoringSession.start_time)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error fetching booked sessions for tutor {tutor_id}: {str(e)}")
            raise RepositoryException(f"Failed to fetch booked sessions: {str(e)}") from e
        return [BookedSession.model_validate(row) for row in rows]

    def find_overlapping(
        self,
        tutor_id: str,
        start_time: datetime,
        end_time: datetime,
        exclude_session_id: Optional[str] = None,
    ) -> List[TutoringSession]:
        try:
            query = self._blocking_for_tutor(tutor_id).filter(
                TutoringSession.start_time < end_time,
                TutoringSession.end_time > start_time,
            )
            if exclude_session_id:
                query = query.filter(TutoringSession.id != exclude_session_id)
            return query.order_by(TutoringSession.start_time).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking overlaps for tutor {tutor_id}: {str(e)}")
            raise RepositoryException(f"Failed to check overlaps: {str(e)}") from e

    def count_blocking_sessions_between(
        self,
        tutor_id: str,
        week_start: datetime,
        week_end: datetime,
        exclude_session_id: Optional[str] = None,
    ) -> int:
        """Scheduled/completed sessions whose start falls in ``[week_start, week_end)``."""
        try:
            query = self.db.query(func.count(TutoringSession.id)).filter(
                TutoringSession.tutor_id == tutor_id,
                TutoringSession.status.in_(_BLOCKING),
                TutoringSession.start_time >= week_start,
                TutoringSession.start_time < week_end,
            )
            if exclude_session_id:
                query = query.filter(TutoringSession.id != exclude_session_id)
            return int(query.scalar() or 0)
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting weekly sessions for tutor {tutor_id}: {str(e)}")
            raise RepositoryException(f"Failed to count weekly sessions: {str(e)}") from e

    def insert_session(self, **fields: Any) -> TutoringSession:
        """
        Insert a session; the store's overlap guard has the final word.

        Raises:
            ConstraintViolation: named ``sessions_no_overlap_per_tutor`` on overlap
        """
        return self.create(**fields)

    def update_session_time(
        self, session: TutoringSession, start_time: datetime, end_time: datetime
    ) -> TutoringSession:
        session.start_time = start_time
        session.end_time = end_time
        self.flush()
        return session

    def get_for_update(self, session_id: str) -> Optional[TutoringSession]:
        try:
            return (
                self.db.query(TutoringSession)
                .filter(TutoringSession.id == session_id)
                .with_for_update()
                .populate_existing()
                .one_or_none()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking session {session_id}: {str(e)}")
            raise RepositoryException(f"Failed to load session {session_id}: {str(e)}") from e
