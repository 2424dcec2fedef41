from fastapi import Response

from tutorbook.ratelimit.headers import set_rate_headers
from tutorbook.ratelimit.identity import client_fingerprint, payment_intent_key


def test_fingerprint_is_short_and_stable():
    first = client_fingerprint("203.0.113.7", "Mozilla/5.0 (X11; Linux x86_64)")

    assert first == client_fingerprint("203.0.113.7", "Mozilla/5.0 (X11; Linux x86_64)")
    assert len(first) == 16
    int(first, 16)


def test_fingerprint_only_uses_the_user_agent_prefix():
    # both agents share their first 20 characters
    assert client_fingerprint("203.0.113.7", "Mozilla/5.0 (X11; Linux)") == client_fingerprint(
        "203.0.113.7", "Mozilla/5.0 (X11; Li-something-else"
    )
    assert client_fingerprint("203.0.113.7", "agent") != client_fingerprint("203.0.113.8", "agent")


def test_missing_parts_still_fingerprint():
    assert len(client_fingerprint(None, None)) == 16


def test_payment_intent_key_layout():
    assert payment_intent_key("tb", "sess", "stud", "abcd") == "tb:payment_intent:sess:stud:abcd"


def test_set_rate_headers():
    res = Response()

    set_rate_headers(res, remaining=-1, limit=10, reset_epoch_s=1_700_000_000.9, retry_after_s=12.0)

    assert res.headers["X-RateLimit-Remaining"] == "0"
    assert res.headers["X-RateLimit-Limit"] == "10"
    assert res.headers["X-RateLimit-Reset"] == "1700000000"
    assert res.headers["Retry-After"] == "12"


def test_set_rate_headers_without_retry():
    res = Response()

    set_rate_headers(res, remaining=5, limit=10, reset_epoch_s=1_234_567_890, retry_after_s=None)

    assert "Retry-After" not in res.headers
