"""
Prometheus metrics for the tutorbook scheduling core.

Service timings come from the ``@measure_operation`` decorator; the domain
counters below are bumped directly by the booking and payment paths.
"""

from threading import Lock
from time import monotonic
from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Custom registry so test processes can import the module repeatedly
REGISTRY = CollectorRegistry()

http_request_duration_seconds = Histogram(
    "tutorbook_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

http_requests_total = Counter(
    "tutorbook_http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
)

service_operation_duration_seconds = Histogram(
    "tutorbook_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "tutorbook_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "tutorbook_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

# Booking outcomes
booking_commits_total = Counter(
    "tutorbook_booking_commits_total",
    "Booking commit attempts by outcome",
    ["outcome"],  # committed | slot_conflict | weekly_limit | invalid
    registry=REGISTRY,
)

post_commit_hook_failures_total = Counter(
    "tutorbook_post_commit_hook_failures_total",
    "Post-commit hooks that raised after a booking was durable",
    ["hook"],
    registry=REGISTRY,
)

slots_generated_total = Counter(
    "tutorbook_slots_generated_total",
    "Bookable units emitted by the slot generator",
    ["available"],  # true | false
    registry=REGISTRY,
)

# Payment guard outcomes
payment_guard_decisions_total = Counter(
    "tutorbook_payment_guard_decisions_total",
    "Per-process payment request guard decisions",
    ["result"],  # allowed | cooldown | too_fast | duplicate | already_processing
    registry=REGISTRY,
)

payment_guard_in_flight = Gauge(
    "tutorbook_payment_guard_in_flight",
    "1 while a payment-intent request holds the process guard",
    registry=REGISTRY,
)

payment_provider_errors_total = Counter(
    "tutorbook_payment_provider_errors_total",
    "Payment provider failures by category",
    ["category"],  # rate_limited | unavailable
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    _cache_lock: Lock = Lock()
    _cache_payload: Optional[bytes] = None
    _cache_ts: Optional[float] = None
    _cache_ttl_seconds: float = 1.0

    @staticmethod
    def record_http_request(method: str, endpoint: str, duration: float, status_code: int) -> None:
        labels = {"method": method, "endpoint": endpoint, "status_code": str(status_code)}
        http_request_duration_seconds.labels(**labels).observe(duration)
        http_requests_total.labels(**labels).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'BookingService')
            operation: Operation/method name (e.g., 'commit_booking')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def get_metrics() -> bytes:
        """Metrics in Prometheus text format, cached for a short TTL."""
        now = monotonic()
        payload = PrometheusMetrics._cache_payload
        ts = PrometheusMetrics._cache_ts
        if payload is not None and ts is not None and (now - ts) <= PrometheusMetrics._cache_ttl_seconds:
            return payload

        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_payload = cast(bytes, generate_latest(REGISTRY))
            PrometheusMetrics._cache_ts = monotonic()
            return PrometheusMetrics._cache_payload

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)

    @staticmethod
    def _invalidate_cache() -> None:
        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_ts = None
            PrometheusMetrics._cache_payload = None

    # Domain helpers
    @staticmethod
    def inc_booking_commit(outcome: str) -> None:
        booking_commits_total.labels(outcome=outcome).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def inc_post_commit_hook_failure(hook: str) -> None:
        post_commit_hook_failures_total.labels(hook=hook).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_slots_generated(available: int, unavailable: int) -> None:
        if available:
            slots_generated_total.labels(available="true").inc(available)
        if unavailable:
            slots_generated_total.labels(available="false").inc(unavailable)
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def inc_payment_guard_decision(result: str) -> None:
        payment_guard_decisions_total.labels(result=result).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def set_payment_guard_in_flight(active: bool) -> None:
        payment_guard_in_flight.set(1 if active else 0)

    @staticmethod
    def inc_payment_provider_error(category: str) -> None:
        payment_provider_errors_total.labels(category=category).inc()
        PrometheusMetrics._invalidate_cache()


# Singleton instance
prometheus_metrics = PrometheusMetrics()
