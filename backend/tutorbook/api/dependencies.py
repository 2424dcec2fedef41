# backend/tutorbook/api/dependencies.py
"""
Dependency injection for the HTTP layer.

Services are built per request around the request's database session.
Process-wide collaborators (payment guard, payment provider, rate-limit
store) live on ``app.state`` and are created by the application factory.
"""

import logging
from typing import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ..database import get_db as original_get_db
from ..integrations.payment_provider import PaymentProvider
from ..services.availability_service import AvailabilityService
from ..services.booking_service import BookingService
from ..services.payment_rate_limiter import PaymentRateLimiter
from ..services.payment_service import PaymentService

logger = logging.getLogger(__name__)


def get_db() -> Generator[Session, None, None]:
    """
    Get database session dependency.

    Yields:
        Database session that will be closed after use
    """
    yield from original_get_db()


def get_payment_rate_limiter(request: Request) -> PaymentRateLimiter:
    return request.app.state.payment_rate_limiter


def get_payment_provider(request: Request) -> PaymentProvider:
    return request.app.state.payment_provider


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)


def get_booking_service(request: Request, db: Session = Depends(get_db)) -> BookingService:
    """Booking service with the application's post-commit hooks attached."""
    hooks = getattr(request.app.state, "post_commit_hooks", [])
    return BookingService(db, post_commit_hooks=hooks)


def get_payment_service(
    db: Session = Depends(get_db),
    provider: PaymentProvider = Depends(get_payment_provider),
    rate_limiter: PaymentRateLimiter = Depends(get_payment_rate_limiter),
) -> PaymentService:
    return PaymentService(db, provider=provider, rate_limiter=rate_limiter)
