from tutorbook.ratelimit.fixed_window import WindowEntry, fixed_window_decide


def test_first_hit_opens_a_window():
    entry, decision = fixed_window_decide(now_s=100.0, entry=None, limit=3, window_s=60)

    assert decision.allowed is True
    assert decision.remaining == 2
    assert entry == WindowEntry(count=1, reset_at_s=160.0)
    assert decision.reset_epoch_s == 160.0


def test_hits_past_the_limit_are_blocked_until_reset():
    entry = WindowEntry(count=3, reset_at_s=160.0)

    new_entry, decision = fixed_window_decide(now_s=130.0, entry=entry, limit=3, window_s=60)

    assert decision.allowed is False
    assert decision.retry_after_s == 30.0
    assert decision.remaining == 0
    # rejected requests do not consume the window
    assert new_entry.count == 3


def test_expired_window_starts_over():
    entry = WindowEntry(count=3, reset_at_s=160.0)

    new_entry, decision = fixed_window_decide(now_s=160.0, entry=entry, limit=3, window_s=60)

    assert decision.allowed is True
    assert new_entry == WindowEntry(count=1, reset_at_s=220.0)


def test_zero_limit_blocks_everything():
    _, decision = fixed_window_decide(now_s=0.0, entry=None, limit=0, window_s=60)

    assert decision.allowed is False
    assert decision.limit == 0
