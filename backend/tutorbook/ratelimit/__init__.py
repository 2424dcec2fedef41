"""Fixed-window request throttling with in-memory and Redis backends.

Currently wired to payment-intent creation only.
"""

from .dependency import payment_intent_rate_limit
from .fixed_window import Decision, WindowEntry, fixed_window_decide
from .store import InMemoryWindowStore, RedisWindowStore, WindowStore, build_window_store

__all__ = [
    "Decision",
    "InMemoryWindowStore",
    "RedisWindowStore",
    "WindowEntry",
    "WindowStore",
    "build_window_store",
    "fixed_window_decide",
    "payment_intent_rate_limit",
]
