"""
Per-process payment request guard.

Suppresses duplicate or too-frequent payment-intent requests before they
reach the provider. State lives in memory, resets on restart and is not
shared between instances: provider idempotency keys remain the real dedup.

Decision order for ``check_rate_limit``:

1. cooldown active -> reject (``cooldown``); an expired cooldown resets
2. count the request in the rolling window; above ``max_requests`` -> cooldown
3. less than ``min_interval_ms`` since the last accepted request -> ``too_fast``
4. a request is in flight -> duplicate (same session) or ``already_processing``
5. otherwise proceed
"""

from contextlib import contextmanager
from dataclasses import dataclass, replace
import logging
import threading
import time
from typing import Callable, Iterator, Optional

from ..core.exceptions import RateLimitedException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

REASON_COOLDOWN = "cooldown"
REASON_TOO_FAST = "too_fast"
REASON_DUPLICATE = "duplicate"
REASON_ALREADY_PROCESSING = "already_processing"

_MESSAGES = {
    REASON_COOLDOWN: "Too many payment attempts. Please wait before trying again.",
    REASON_TOO_FAST: "Please wait a moment before retrying the payment.",
    REASON_DUPLICATE: "A payment for this session is already being processed.",
    REASON_ALREADY_PROCESSING: "Another payment is already being processed.",
}


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class RateLimitState:
    """Mutable guard state; times are clock milliseconds."""

    last_request_time: Optional[float] = None
    request_count: int = 0
    window_start: Optional[float] = None
    active_session_id: Optional[str] = None
    is_processing: bool = False
    processing_started_at: Optional[float] = None
    is_rate_limited: bool = False
    rate_limit_expiry: Optional[float] = None


@dataclass(frozen=True)
class RateLimitCheck:
    can_proceed: bool
    is_duplicate: bool = False
    reason: Optional[str] = None
    retry_after_s: float = 0.0

    @property
    def message(self) -> Optional[str]:
        return _MESSAGES.get(self.reason) if self.reason else None


class PaymentRateLimiter:
    """
    Thread-safe guard around payment-intent initiation.

    One instance per process, created by the application factory. Prefer
    ``acquire`` over the raw ``check_rate_limit``/``start_request``/
    ``end_request`` calls: it checks and marks in one step and always
    releases.
    """

    def __init__(
        self,
        max_requests: int = 3,
        window_ms: int = 60_000,
        min_interval_ms: int = 2_000,
        cooldown_ms: int = 20_000,
        stale_after_ms: Optional[int] = 30_000,
        clock: Callable[[], float] = _monotonic_ms,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_ms <= 0:
            raise ValueError("window_ms must be positive")
        self.max_requests = max_requests
        self.window_ms = window_ms
        self.min_interval_ms = max(0, min_interval_ms)
        self.cooldown_ms = max(0, cooldown_ms)
        self.stale_after_ms = stale_after_ms if stale_after_ms and stale_after_ms > 0 else None
        self._clock = clock
        self._lock = threading.Lock()
        self._state = RateLimitState()

    @classmethod
    def from_settings(cls, config) -> "PaymentRateLimiter":  # type: ignore[no-untyped-def]
        return cls(
            max_requests=config.payment_guard_max_requests,
            window_ms=config.payment_guard_window_ms,
            min_interval_ms=config.payment_guard_min_interval_ms,
            cooldown_ms=config.payment_guard_cooldown_ms,
            stale_after_ms=config.payment_guard_stale_after_ms,
        )

    # Public API

    def check_rate_limit(self, session_id: str) -> RateLimitCheck:
        with self._lock:
            check = self._check_locked(session_id, self._clock())
        self._record(check)
        return check

    def start_request(self, session_id: str) -> None:
        with self._lock:
            self._start_locked(session_id, self._clock())

    def end_request(self, session_id: Optional[str] = None) -> None:
        """Clear the in-flight marker; a mismatched ``session_id`` is ignored."""
        with self._lock:
            state = self._state
            if session_id is not None and state.active_session_id not in (None, session_id):
                logger.debug(
                    "Ignoring end_request for %s; %s holds the guard",
                    session_id,
                    state.active_session_id,
                )
                return
            state.is_processing = False
            state.processing_started_at = None
        prometheus_metrics.set_payment_guard_in_flight(False)

    def reset(self) -> None:
        with self._lock:
            self._state = RateLimitState()
        prometheus_metrics.set_payment_guard_in_flight(False)

    def snapshot(self) -> RateLimitState:
        """Copy of the current state, for diagnostics and tests."""
        with self._lock:
            return replace(self._state)

    @contextmanager
    def acquire(self, session_id: str) -> Iterator[RateLimitCheck]:
        """
        Check and mark ``session_id`` in flight for the duration of the block.

        Raises:
            RateLimitedException: the request was rejected; nothing was marked
        """
        with self._lock:
            now = self._clock()
            check = self._check_locked(session_id, now)
            if check.can_proceed:
                self._start_locked(session_id, now)
        self._record(check)
        if not check.can_proceed:
            raise RateLimitedException(
                check.retry_after_s,
                check.message,
                reason=check.reason,
                is_duplicate=check.is_duplicate,
            )
        try:
            yield check
        finally:
            self.end_request(session_id)

    # Internals (caller holds the lock)

    def _check_locked(self, session_id: str, now: float) -> RateLimitCheck:
        state = self._state

        if state.is_rate_limited:
            if state.rate_limit_expiry is not None and now < state.rate_limit_expiry:
                return RateLimitCheck(
                    can_proceed=False,
                    reason=REASON_COOLDOWN,
                    retry_after_s=(state.rate_limit_expiry - now) / 1000.0,
                )
            state.is_rate_limited = False
            state.rate_limit_expiry = None
            state.request_count = 0
            state.window_start = now

        self._release_if_stale(now)

        if state.window_start is None or now - state.window_start >= self.window_ms:
            state.window_start = now
            state.request_count = 0
        state.request_count += 1

        if state.request_count > self.max_requests:
            state.is_rate_limited = True
            state.rate_limit_expiry = now + self.cooldown_ms
            logger.warning(
                "Payment guard entering cooldown after %s requests in %sms",
                state.request_count,
                self.window_ms,
                extra={"session_id": session_id},
            )
            return RateLimitCheck(
                can_proceed=False,
                reason=REASON_COOLDOWN,
                retry_after_s=self.cooldown_ms / 1000.0,
            )

        if state.last_request_time is not None:
            elapsed = now - state.last_request_time
            if elapsed < self.min_interval_ms:
                return RateLimitCheck(
                    can_proceed=False,
                    reason=REASON_TOO_FAST,
                    retry_after_s=(self.min_interval_ms - elapsed) / 1000.0,
                )

        if state.is_processing:
            if state.active_session_id == session_id:
                return RateLimitCheck(
                    can_proceed=False,
                    is_duplicate=True,
                    reason=REASON_DUPLICATE,
                    retry_after_s=self.min_interval_ms / 1000.0,
                )
            return RateLimitCheck(
                can_proceed=False,
                is_duplicate=False,
                reason=REASON_ALREADY_PROCESSING,
                retry_after_s=self.min_interval_ms / 1000.0,
            )

        return RateLimitCheck(can_proceed=True, is_duplicate=state.active_session_id == session_id)

    def _start_locked(self, session_id: str, now: float) -> None:
        state = self._state
        state.last_request_time = now
        state.active_session_id = session_id
        state.is_processing = True
        state.processing_started_at = now
        prometheus_metrics.set_payment_guard_in_flight(True)

    def _release_if_stale(self, now: float) -> None:
        state = self._state
        if (
            self.stale_after_ms is not None
            and state.is_processing
            and state.processing_started_at is not None
            and now - state.processing_started_at >= self.stale_after_ms
        ):
            logger.warning(
                "Releasing stale payment guard held by session %s for %.0fms",
                state.active_session_id,
                now - state.processing_started_at,
            )
            state.is_processing = False
            state.processing_started_at = None

    @staticmethod
    def _record(check: RateLimitCheck) -> None:
        prometheus_metrics.inc_payment_guard_decision(
            "allowed" if check.can_proceed else (check.reason or "rejected")
        )
