"""Service layer: business logic on top of the repositories."""

from .availability_service import AvailabilityService
from .base import BaseService
from .booking_service import BookingService
from .payment_rate_limiter import PaymentRateLimiter, RateLimitCheck, RateLimitState
from .payment_service import PaymentService
from .slot_generator import generate_slots
from .weekly_limit import WeeklyLimitGuard

__all__ = [
    "AvailabilityService",
    "BaseService",
    "BookingService",
    "PaymentRateLimiter",
    "PaymentService",
    "RateLimitCheck",
    "RateLimitState",
    "WeeklyLimitGuard",
    "generate_slots",
]
