"""
Payment intent records.

One row per provider-side payment intent created for a tutoring session.
A session normally has one; a new attempt is only made after the previous
intent left the ``pending`` state.
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.ulid_helper import generate_ulid
from ..database import Base
from .types import UTCDateTime

if TYPE_CHECKING:
    from .session import TutoringSession


class PaymentIntentRecord(Base):
    """Provider payment intent attached to a session."""

    __tablename__ = "payment_intents"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    session_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("tutoring_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    provider_intent_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False, comment="Amount in cents")
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="usd")
    # Mirrors the provider status vocabulary (requires_payment_method, succeeded, ...)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(128), nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=lambda: datetime.now(timezone.utc), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    session: Mapped["TutoringSession"] = relationship("TutoringSession", back_populates="payment_intents")

    # Provider statuses in which the intent can still be confirmed by the client
    PENDING_STATUSES = frozenset(
        {"requires_payment_method", "requires_confirmation", "requires_action", "processing"}
    )

    @property
    def is_pending(self) -> bool:
        return self.status in self.PENDING_STATUSES

    def __repr__(self) -> str:
        return f"<PaymentIntentRecord(session_id={self.session_id}, status={self.status})>"
