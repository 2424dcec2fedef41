"""Tutor profile: the scheduling-relevant slice of a tutor account."""

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.ulid_helper import generate_ulid
from ..database import Base


class TutorProfile(Base):
    """
    Scheduling settings for one tutor.

    ``max_weekly_sessions`` caps scheduled+completed sessions per calendar
    week (Sunday-Saturday); NULL means unlimited. The row also acts as the
    per-tutor lock taken while committing a booking.
    """

    __tablename__ = "tutor_profiles"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    display_name = Column(String(255), nullable=False, default="")
    max_weekly_sessions = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    availability = relationship(
        "TutorAvailability", back_populates="tutor", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint(
            "max_weekly_sessions IS NULL OR max_weekly_sessions >= 0",
            name="ck_tutor_profiles_weekly_limit",
        ),
    )

    def __repr__(self) -> str:
        return f"<TutorProfile {self.id} max_weekly={self.max_weekly_sessions}>"
