"""
Database models for the tutorbook scheduling core.

Importing this package registers every table on ``Base.metadata``.
"""

from .availability import TutorAvailability
from .payment import PaymentIntentRecord
from .session import TutoringSession
from .tutor import TutorProfile

__all__ = [
    "PaymentIntentRecord",
    "TutorAvailability",
    "TutorProfile",
    "TutoringSession",
]
