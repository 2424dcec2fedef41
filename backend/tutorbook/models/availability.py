"""
Weekly recurring availability template.

One row per tutor holding the full weekday → ranges mapping as JSON. The
template is replaced wholesale by the settings action; the slot generator
only ever reads a snapshot of it.
"""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class TutorAvailability(Base):
    __tablename__ = "tutor_availability"

    tutor_id = Column(
        String(26),
        ForeignKey("tutor_profiles.id", ondelete="CASCADE"),
        primary_key=True,
    )
    # {"monday": [{"start": "09:00", "end": "11:00"}], ...}
    availability = Column(JSON, nullable=False, default=dict)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    tutor = relationship("TutorProfile", back_populates="availability")

    def __repr__(self) -> str:
        days = sorted(k for k, v in (self.availability or {}).items() if v)
        return f"<TutorAvailability tutor={self.tutor_id} days={days}>"
