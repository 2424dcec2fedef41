# backend/tutorbook/repositories/factory.py
"""
Repository Factory for the tutorbook scheduling core.

Provides centralized creation of repository instances so services never
construct them directly.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .availability_repository import AvailabilityRepository
    from .payment_repository import PaymentRepository
    from .session_repository import SessionRepository
    from .tutor_repository import TutorRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_availability_repository(db: Session) -> "AvailabilityRepository":
        from .availability_repository import AvailabilityRepository

        return AvailabilityRepository(db)

    @staticmethod
    def create_session_repository(db: Session) -> "SessionRepository":
        from .session_repository import SessionRepository

        return SessionRepository(db)

    @staticmethod
    def create_tutor_repository(db: Session) -> "TutorRepository":
        from .tutor_repository import TutorRepository

        return TutorRepository(db)

    @staticmethod
    def create_payment_repository(db: Session) -> "PaymentRepository":
        from .payment_repository import PaymentRepository

        return PaymentRepository(db)
