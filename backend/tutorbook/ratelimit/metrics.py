from prometheus_client import Counter, Histogram

from ..monitoring.prometheus_metrics import REGISTRY

rl_decisions = Counter(
    "tutorbook_rl_decisions_total",
    "rate-limit decisions",
    ["bucket", "action"],
    registry=REGISTRY,
)
rl_retry_after = Histogram(
    "tutorbook_rl_retry_after_seconds",
    "retry-after values of blocked requests",
    ["bucket"],
    registry=REGISTRY,
    buckets=(0.5, 1.0, 5.0, 10.0, 30.0, 60.0),
)
rl_eval_errors = Counter(
    "tutorbook_rl_eval_errors_total",
    "errors during rate-limit evaluation (e.g., Redis failures)",
    ["bucket"],
    registry=REGISTRY,
)

__all__ = ["rl_decisions", "rl_eval_errors", "rl_retry_after"]
