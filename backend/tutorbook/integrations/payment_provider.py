# backend/tutorbook/integrations/payment_provider.py
"""
Payment provider adapter.

The scheduling core only needs two provider calls: create a payment intent
and read one back. Provider throttling surfaces as ``RateLimitedException``
and every other provider failure as ``UpstreamUnavailableException`` so the
service layer never sees SDK error types.
"""

from abc import ABC, abstractmethod
import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel
import stripe

from ..core.exceptions import RateLimitedException, UpstreamUnavailableException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_RETRY_AFTER_S = 1.0


class ProviderIntent(BaseModel):
    """Provider-side view of a payment intent."""

    id: str
    client_secret: Optional[str] = None
    amount: int
    currency: str
    status: str


class PaymentProvider(ABC):
    @abstractmethod
    def create_intent(
        self,
        *,
        session_id: str,
        amount: int,
        currency: str,
        tutor_id: str,
        student_id: str,
        idempotency_key: str,
        description: Optional[str] = None,
    ) -> ProviderIntent:
        """Create a payment intent; the idempotency key makes retries safe."""

    @abstractmethod
    def retrieve_intent(self, intent_id: str) -> ProviderIntent:
        """Fetch the current state of an intent."""


def _retry_after_from(exc: "stripe.StripeError") -> float:
    headers: Any = getattr(exc, "headers", None) or {}
    raw = None
    try:
        raw = headers.get("Retry-After") or headers.get("retry-after")
    except AttributeError:
        raw = None
    try:
        return max(float(raw), 0.0) if raw is not None else DEFAULT_PROVIDER_RETRY_AFTER_S
    except (TypeError, ValueError):
        return DEFAULT_PROVIDER_RETRY_AFTER_S


class StripePaymentProvider(PaymentProvider):
    """
    Stripe implementation.

    Network failures are retried by the SDK (``max_network_retries``) with
    a fixed per-call timeout; nothing else is retried here.
    """

    def __init__(self, api_key: str, max_network_retries: int = 2, timeout_s: float = 30.0):
        stripe.api_key = api_key
        stripe.max_network_retries = max_network_retries
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout_s)
        logger.info(
            "Stripe provider configured (timeout=%ss, network retries=%s)",
            timeout_s,
            max_network_retries,
        )

    @staticmethod
    def _to_intent(intent: Any) -> ProviderIntent:
        return ProviderIntent(
            id=intent.id,
            client_secret=getattr(intent, "client_secret", None),
            amount=int(intent.amount),
            currency=intent.currency,
            status=intent.status,
        )

    @staticmethod
    def _translate(exc: "stripe.StripeError", operation: str) -> Exception:
        if isinstance(exc, stripe.RateLimitError):
            prometheus_metrics.inc_payment_provider_error("rate_limited")
            logger.warning("Stripe rate limited %s: %s", operation, exc)
            return RateLimitedException(
                _retry_after_from(exc),
                "The payment provider is busy. Please retry shortly.",
                reason="provider_rate_limited",
            )
        prometheus_metrics.inc_payment_provider_error("unavailable")
        logger.error("Stripe %s failed: %s", operation, exc)
        return UpstreamUnavailableException(
            "Payment provider is unavailable",
            details={"operation": operation, "provider_code": getattr(exc, "code", None)},
        )

    def create_intent(
        self,
        *,
        session_id: str,
        amount: int,
        currency: str,
        tutor_id: str,
        student_id: str,
        idempotency_key: str,
        description: Optional[str] = None,
    ) -> ProviderIntent:
        params: Dict[str, Any] = {
            "amount": amount,
            "currency": currency,
            "automatic_payment_methods": {"enabled": True},
            "metadata": {
                "session_id": session_id,
                "tutor_id": tutor_id,
                "student_id": student_id,
            },
        }
        if description:
            params["description"] = description
        try:
            intent = stripe.PaymentIntent.create(idempotency_key=idempotency_key, **params)
        except stripe.StripeError as exc:
            raise self._translate(exc, "create_intent") from exc
        return self._to_intent(intent)

    def retrieve_intent(self, intent_id: str) -> ProviderIntent:
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id)
        except stripe.StripeError as exc:
            raise self._translate(exc, "retrieve_intent") from exc
        return self._to_intent(intent)


class UnconfiguredPaymentProvider(PaymentProvider):
    """Used when no Stripe key is configured: every call reports the provider as unavailable."""

    def _unavailable(self) -> UpstreamUnavailableException:
        return UpstreamUnavailableException("Payment provider is not configured")

    def create_intent(self, **kwargs: Any) -> ProviderIntent:  # type: ignore[override]
        raise self._unavailable()

    def retrieve_intent(self, intent_id: str) -> ProviderIntent:
        raise self._unavailable()


def build_payment_provider(config) -> PaymentProvider:  # type: ignore[no-untyped-def]
    """Provider for the running process, chosen from settings."""
    if config.stripe_secret_key is None:
        logger.warning("Stripe secret key not configured - payment initiation is disabled")
        return UnconfiguredPaymentProvider()
    return StripePaymentProvider(
        api_key=config.stripe_secret_key.get_secret_value(),
        max_network_retries=config.stripe_max_network_retries,
        timeout_s=config.external_call_timeout_s,
    )
