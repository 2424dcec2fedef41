from types import SimpleNamespace
from unittest.mock import MagicMock

from tests.helpers import FakeClock
from tutorbook.ratelimit.store import InMemoryWindowStore, RedisWindowStore, build_window_store


class TestInMemoryWindowStore:
    def test_limits_per_key_and_resets_with_the_window(self):
        clock = FakeClock(1_000.0)
        store = InMemoryWindowStore(clock=clock)

        assert store.hit("a", limit=2, window_s=60).allowed is True
        assert store.hit("a", limit=2, window_s=60).allowed is True
        blocked = store.hit("a", limit=2, window_s=60)
        assert blocked.allowed is False
        assert blocked.retry_after_s == 60.0
        assert store.hit("b", limit=2, window_s=60).allowed is True

        clock.advance(60)
        assert store.hit("a", limit=2, window_s=60).allowed is True

    def test_idle_entries_are_pruned(self):
        clock = FakeClock(0.0)
        store = InMemoryWindowStore(clock=clock)
        store.hit("old", limit=5, window_s=10)

        clock.advance(25)
        store.hit("new", limit=5, window_s=10)

        assert len(store) == 1

    def test_reset_forgets_everything(self):
        store = InMemoryWindowStore(clock=FakeClock(0.0))
        store.hit("a", limit=1, window_s=60)

        store.reset()

        assert len(store) == 0
        assert store.hit("a", limit=1, window_s=60).allowed is True


class TestRedisWindowStore:
    @staticmethod
    def _client(count, ttl):
        client = MagicMock()
        client.pipeline.return_value.execute.return_value = [count, ttl]
        return client

    def test_first_hit_sets_expiry(self):
        client = self._client(1, -1)
        store = RedisWindowStore(client, clock=lambda: 1_000.0)

        decision = store.hit("tb:payment_intent:k", limit=3, window_s=60)

        client.expire.assert_called_once_with("tb:payment_intent:k", 60)
        assert decision.allowed is True
        assert decision.remaining == 2
        assert decision.reset_epoch_s == 1_060.0

    def test_over_limit_is_blocked_for_remaining_ttl(self):
        client = self._client(4, 25)
        store = RedisWindowStore(client, clock=lambda: 1_000.0)

        decision = store.hit("tb:payment_intent:k", limit=3, window_s=60)

        client.expire.assert_not_called()
        assert decision.allowed is False
        assert decision.retry_after_s == 25.0

    def test_builder_picks_backend_from_settings(self, monkeypatch):
        monkeypatch.setattr("tutorbook.ratelimit.store.get_redis", lambda url: MagicMock())

        assert isinstance(build_window_store(SimpleNamespace(rate_limit_backend="memory")), InMemoryWindowStore)
        redis_store = build_window_store(
            SimpleNamespace(rate_limit_backend="redis", rate_limit_redis_url="redis://cache:6379/1")
        )
        assert isinstance(redis_store, RedisWindowStore)
