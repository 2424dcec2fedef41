"""Counter storage for the fixed-window throttle."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, Optional, Protocol

import redis

from .fixed_window import Decision, WindowEntry, fixed_window_decide
from .redis_backend import get_redis

logger = logging.getLogger(__name__)


class WindowStore(Protocol):
    def hit(self, key: str, limit: int, window_s: int) -> Decision: ...


class InMemoryWindowStore:
    """
    Process-local counters guarded by a lock.

    Entries idle for more than two windows are pruned at most once per
    window so the map cannot grow without bound.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, WindowEntry] = {}
        self._last_prune_s: Optional[float] = None

    def __len__(self) -> int:
        return len(self._entries)

    def hit(self, key: str, limit: int, window_s: int) -> Decision:
        now_s = self._clock()
        with self._lock:
            self._prune(now_s, window_s)
            entry, decision = fixed_window_decide(now_s, self._entries.get(key), limit, window_s)
            self._entries[key] = entry
        return decision

    def _prune(self, now_s: float, window_s: int) -> None:
        if self._last_prune_s is not None and now_s - self._last_prune_s < window_s:
            return
        cutoff = now_s - window_s
        # reset_at_s = window start + window_s, so this drops entries whose window began 2+ windows ago
        stale = [key for key, entry in self._entries.items() if entry.reset_at_s <= cutoff]
        for key in stale:
            del self._entries[key]
        self._last_prune_s = now_s
        if stale:
            logger.debug("Pruned %d expired rate-limit entries", len(stale))

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()
            self._last_prune_s = None


class RedisWindowStore:
    """Shared counters: ``INCR`` then ``EXPIRE`` on the first hit of a window."""

    def __init__(self, client: Optional[redis.Redis] = None, clock: Callable[[], float] = time.time):
        self._client = client if client is not None else get_redis()
        self._clock = clock

    def hit(self, key: str, limit: int, window_s: int) -> Decision:
        pipe = self._client.pipeline()
        pipe.incr(key)
        pipe.ttl(key)
        count, ttl = pipe.execute()
        count = int(count)
        ttl = int(ttl)
        if count == 1 or ttl < 0:
            self._client.expire(key, window_s)
            ttl = window_s

        now_s = self._clock()
        reset_epoch_s = now_s + ttl
        if count > limit:
            return Decision(False, retry_after_s=float(ttl), remaining=0, limit=limit, reset_epoch_s=reset_epoch_s)
        return Decision(True, retry_after_s=0.0, remaining=limit - count, limit=limit, reset_epoch_s=reset_epoch_s)


def build_window_store(config) -> WindowStore:  # type: ignore[no-untyped-def]
    if config.rate_limit_backend == "redis":
        return RedisWindowStore(get_redis(config.rate_limit_redis_url))
    return InMemoryWindowStore()
