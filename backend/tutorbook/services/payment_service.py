# backend/tutorbook/services/payment_service.py
"""
Payment Service for the tutorbook scheduling core.

Starts payment for a committed session and answers status polls. Every
initiation runs under the process payment guard; provider calls happen
outside database transactions so a slow provider never holds a lock.
"""

from typing import Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import PaymentStatus, SessionStatus
from ..core.exceptions import BusinessRuleException, NotFoundException, ValidationException
from ..integrations.payment_provider import PaymentProvider, ProviderIntent
from ..models.payment import PaymentIntentRecord
from ..models.session import TutoringSession
from ..repositories.factory import RepositoryFactory
from ..repositories.payment_repository import PaymentRepository
from ..repositories.session_repository import SessionRepository
from ..schemas.payment import PaymentIntentResult, PaymentStatusResult
from .base import BaseService
from .payment_rate_limiter import PaymentRateLimiter

# Provider intent status -> session payment status
_PROVIDER_STATUS_MAP = {
    "requires_payment_method": PaymentStatus.PROCESSING,
    "requires_confirmation": PaymentStatus.PROCESSING,
    "requires_action": PaymentStatus.PROCESSING,
    "requires_capture": PaymentStatus.PROCESSING,
    "processing": PaymentStatus.PROCESSING,
    "succeeded": PaymentStatus.PAID,
    "canceled": PaymentStatus.FAILED,
}

# Session payment statuses a provider poll must not overwrite
_TERMINAL_PAYMENT_STATUSES = frozenset({PaymentStatus.PAID.value, PaymentStatus.REFUNDED.value})


def map_provider_status(provider_status: str) -> Optional[PaymentStatus]:
    return _PROVIDER_STATUS_MAP.get(provider_status)


def idempotency_key_for(session_id: str, attempt: int) -> str:
    return f"session:{session_id}:attempt:{attempt}"


class PaymentService(BaseService):
    """Payment-intent orchestration for booked sessions."""

    def __init__(
        self,
        db: Session,
        provider: PaymentProvider,
        rate_limiter: PaymentRateLimiter,
        session_repository: Optional[SessionRepository] = None,
        payment_repository: Optional[PaymentRepository] = None,
        currency: Optional[str] = None,
    ):
        super().__init__(db)
        self.provider = provider
        self.rate_limiter = rate_limiter
        self.session_repository = session_repository or RepositoryFactory.create_session_repository(db)
        self.payment_repository = payment_repository or RepositoryFactory.create_payment_repository(db)
        self.currency = (currency or settings.stripe_currency).lower()

    def _load_session(self, session_id: str) -> TutoringSession:
        session = self.session_repository.get_by_id(session_id)
        if session is None:
            raise NotFoundException(f"Session {session_id} not found", details={"session_id": session_id})
        return session

    @BaseService.measure_operation("initiate_payment")
    def initiate_payment(
        self, session_id: str, amount: int, description: Optional[str] = None
    ) -> PaymentIntentResult:
        """
        Create (or reuse) the payment intent for a session.

        Args:
            session_id: Booked session to pay for
            amount: Amount in cents
            description: Optional statement description

        Returns:
            PaymentIntentResult; ``reused`` is True when a pending intent already existed

        Raises:
            RateLimitedException: rejected by the process guard or throttled by the provider
            UpstreamUnavailableException: the provider failed
            BusinessRuleException: session cancelled or already paid
        """
        if amount <= 0:
            raise ValidationException("Payment amount must be positive", details={"amount": amount})

        with self.rate_limiter.acquire(session_id):
            with self.transaction():
                session = self._load_session(session_id)
                if session.status == SessionStatus.CANCELLED.value:
                    raise BusinessRuleException(
                        "Cannot take payment for a cancelled session",
                        details={"session_id": session_id},
                    )
                if session.payment_status in _TERMINAL_PAYMENT_STATUSES:
                    raise BusinessRuleException(
                        "This session has already been paid",
                        details={"session_id": session_id, "payment_status": session.payment_status},
                    )
                pending = self.payment_repository.get_pending_for_session(session_id)
                attempts = self.payment_repository.count(session_id=session_id)
                tutor_id, student_id = session.tutor_id, session.student_id

            if pending is not None:
                reused = self._try_reuse(pending)
                if reused is not None:
                    return reused

            key = idempotency_key_for(session_id, attempts + 1)
            intent = self.provider.create_intent(
                session_id=session_id,
                amount=amount,
                currency=self.currency,
                tutor_id=tutor_id,
                student_id=student_id,
                idempotency_key=key,
                description=description,
            )

            with self.transaction():
                self.payment_repository.record_intent(
                    session_id=session_id,
                    provider_intent_id=intent.id,
                    amount_cents=intent.amount,
                    currency=intent.currency,
                    status=intent.status,
                    idempotency_key=key,
                )
                self._set_session_payment_status(session_id, PaymentStatus.PROCESSING)

        self.log_operation(
            "initiate_payment",
            session_id=session_id,
            payment_intent_id=intent.id,
            attempt=attempts + 1,
        )
        return self._result(session_id, intent, reused=False)

    def _try_reuse(self, record: PaymentIntentRecord) -> Optional[PaymentIntentResult]:
        """Return the existing intent when the provider still considers it pending."""
        intent = self.provider.retrieve_intent(record.provider_intent_id)
        with self.transaction():
            self.payment_repository.update_status(record, intent.status)
            if intent.status not in PaymentIntentRecord.PENDING_STATUSES:
                mapped = map_provider_status(intent.status)
                if mapped is not None:
                    self._set_session_payment_status(record.session_id, mapped)
                return None
        self.logger.info(
            "Reusing pending payment intent %s for session %s",
            intent.id,
            record.session_id,
        )
        return self._result(record.session_id, intent, reused=True)

    def _set_session_payment_status(self, session_id: str, status: PaymentStatus) -> None:
        session = self.session_repository.get_by_id(session_id)
        if session is None or session.payment_status in _TERMINAL_PAYMENT_STATUSES:
            return
        if session.payment_status != status.value:
            session.payment_status = status.value
            self.session_repository.flush()

    @staticmethod
    def _result(session_id: str, intent: ProviderIntent, reused: bool) -> PaymentIntentResult:
        return PaymentIntentResult(
            session_id=session_id,
            payment_intent_id=intent.id,
            client_secret=intent.client_secret,
            amount=intent.amount,
            currency=intent.currency,
            status=intent.status,
            reused=reused,
        )

    @BaseService.measure_operation("get_payment_status")
    def get_payment_status(self, session_id: str) -> PaymentStatusResult:
        """Current payment status, refreshed from the provider when an intent exists."""
        with self.transaction():
            session = self._load_session(session_id)
            latest = self.payment_repository.get_latest_for_session(session_id)
            current_status = session.payment_status

        if latest is None:
            return PaymentStatusResult(session_id=session_id, payment_status=PaymentStatus(current_status))

        intent = self.provider.retrieve_intent(latest.provider_intent_id)
        mapped = map_provider_status(intent.status)
        with self.transaction():
            self.payment_repository.update_status(latest, intent.status)
            if mapped is not None:
                self._set_session_payment_status(session_id, mapped)
            session = self._load_session(session_id)
            current_status = session.payment_status

        return PaymentStatusResult(
            session_id=session_id,
            payment_status=PaymentStatus(current_status),
            payment_intent_id=intent.id,
            provider_status=intent.status,
        )
