# backend/tutorbook/repositories/availability_repository.py
"""
Availability Repository for the tutorbook scheduling core.

Reads and replaces the weekly template. The stored JSON is validated on
the way out so callers only ever see a ``WeeklyAvailability``.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.availability import TutorAvailability
from ..schemas.availability import WeeklyAvailability
from .base_repository import BaseRepository


class AvailabilityRepository(BaseRepository[TutorAvailability]):
    def __init__(self, db: Session):
        super().__init__(db, TutorAvailability)

    def get_availability(self, tutor_id: str) -> Optional[WeeklyAvailability]:
        """
        Snapshot of the tutor's weekly template.

        Returns:
            The template, or None when the tutor never published one
        """
        row = self.get_by_id(tutor_id)
        if row is None:
            return None
        try:
            return WeeklyAvailability.model_validate(row.availability or {})
        except ValidationError as e:
            self.logger.error(f"Stored availability for tutor {tutor_id} is invalid: {str(e)}")
            raise RepositoryException(f"Corrupt availability template for tutor {tutor_id}") from e

    def upsert(self, tutor_id: str, template: WeeklyAvailability) -> TutorAvailability:
        """Replace the tutor's template wholesale."""
        try:
            row = self.db.get(TutorAvailability, tutor_id)
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading availability for tutor {tutor_id}: {str(e)}")
            raise RepositoryException(f"Failed to load availability: {str(e)}") from e

        payload = template.to_storage()
        if row is None:
            row = TutorAvailability(tutor_id=tutor_id, availability=payload)
            self.db.add(row)
        else:
            row.availability = payload
            row.updated_at = datetime.now(timezone.utc)
        self.flush()
        return row
