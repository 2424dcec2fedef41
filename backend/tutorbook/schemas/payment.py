# backend/tutorbook/schemas/payment.py
"""Payment-intent schemas."""

from typing import Optional

from pydantic import Field

from ..core.enums import PaymentStatus
from .base import StandardizedModel, StrictRequestModel


class PaymentIntentCreate(StrictRequestModel):
    """Payment initiation for a booked session. Amount is in minor units (cents)."""

    student_id: str = Field(..., min_length=1, max_length=26)
    amount: int = Field(..., gt=0, description="Amount in cents")
    description: Optional[str] = Field(None, max_length=255)


class PaymentIntentResult(StandardizedModel):
    session_id: str
    payment_intent_id: str
    client_secret: Optional[str] = None
    amount: int
    currency: str
    status: str
    reused: bool = False


class PaymentStatusResult(StandardizedModel):
    session_id: str
    payment_status: PaymentStatus
    payment_intent_id: Optional[str] = None
    provider_status: Optional[str] = None
