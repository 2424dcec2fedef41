"""Shared constants, clocks and fakes for the test suite."""

from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional

from tutorbook.integrations.payment_provider import PaymentProvider, ProviderIntent

# Tuesday; every booking date used in tests lies after it
FIXED_NOW = datetime(2030, 1, 1, 0, 0, tzinfo=timezone.utc)

# Week of Sunday 2030-01-06 .. Saturday 2030-01-12
SUNDAY = date(2030, 1, 6)
MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)
WEDNESDAY = date(2030, 1, 9)
NEXT_MONDAY = date(2030, 1, 14)

WEEKDAY_TEMPLATE: Dict[str, Any] = {
    day: [{"start": "09:00", "end": "17:00"}]
    for day in ("monday", "tuesday", "wednesday", "thursday", "friday")
}


def utc(day: date, hour: int, minute: int = 0) -> datetime:
    """Aware UTC instant on ``day``."""
    return datetime.combine(day, time(hour, minute), tzinfo=timezone.utc)


class FakeClock:
    """Millisecond clock for the payment guard and rate-limit stores."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, amount: float) -> None:
        self.now += amount


class FakePaymentProvider(PaymentProvider):
    """In-memory provider recording every call."""

    def __init__(self) -> None:
        self.created: List[Dict[str, Any]] = []
        self.intents: Dict[str, ProviderIntent] = {}
        self.fail_with: Optional[Exception] = None

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
        if self.fail_with is not None:
            raise self.fail_with
        intent = ProviderIntent(
            id=f"pi_test_{len(self.created) + 1}",
            client_secret=f"pi_test_{len(self.created) + 1}_secret",
            amount=amount,
            currency=currency,
            status="requires_payment_method",
        )
        self.created.append(
            {
                "session_id": session_id,
                "amount": amount,
                "currency": currency,
                "tutor_id": tutor_id,
                "student_id": student_id,
                "idempotency_key": idempotency_key,
                "description": description,
            }
        )
        self.intents[intent.id] = intent
        return intent

    def retrieve_intent(self, intent_id: str) -> ProviderIntent:
        if self.fail_with is not None:
            raise self.fail_with
        return self.intents[intent_id]

    def set_status(self, intent_id: str, status: str) -> None:
        self.intents[intent_id] = self.intents[intent_id].model_copy(update={"status": status})


