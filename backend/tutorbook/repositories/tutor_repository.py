"""Tutor profile data access."""

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.tutor import TutorProfile
from .base_repository import BaseRepository


class TutorRepository(BaseRepository[TutorProfile]):
    def __init__(self, db: Session):
        super().__init__(db, TutorProfile)

    def create_tutor(
        self, display_name: str = "", max_weekly_sessions: Optional[int] = None
    ) -> TutorProfile:
        return self.create(display_name=display_name, max_weekly_sessions=max_weekly_sessions)

    def get_max_weekly_sessions(self, tutor_id: str) -> Optional[int]:
        """Configured weekly cap for ``tutor_id`` (None when unset or the tutor is unknown)."""
        try:
            return (
                self.db.query(TutorProfile.max_weekly_sessions)
                .filter(TutorProfile.id == tutor_id)
                .scalar()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error reading weekly limit for tutor {tutor_id}: {str(e)}")
            raise RepositoryException(f"Failed to read weekly limit: {str(e)}") from e

    def lock_tutor(self, tutor_id: str) -> Optional[TutorProfile]:
        """
        Take the per-tutor row lock for the rest of the transaction.

        PostgreSQL holds ``FOR UPDATE`` until commit so commits for one tutor
        serialise; SQLite has no row locks and relies on BEGIN IMMEDIATE.
        """
        try:
            query = self.db.query(TutorProfile).filter(TutorProfile.id == tutor_id)
            if self.dialect_name != "sqlite":
                query = query.with_for_update()
            return query.populate_existing().one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking tutor {tutor_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock tutor {tutor_id}: {str(e)}") from e
