from __future__ import annotations

import asyncio
import json
import logging

from fastapi import Request, Response
import redis

from ..core.config import settings
from ..core.exceptions import RateLimitedException
from .headers import set_rate_headers
from .identity import client_fingerprint, client_ip, payment_intent_key
from .metrics import rl_decisions, rl_eval_errors, rl_retry_after
from .store import WindowStore

logger = logging.getLogger(__name__)

BUCKET_PAYMENT_INTENT = "payment_intent"


async def _student_id_from_body(request: Request) -> str:
    # The body is already cached on the request by the time dependencies run.
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return ""
    if isinstance(payload, dict):
        return str(payload.get("student_id") or "")
    return ""


async def payment_intent_rate_limit(request: Request, response: Response, session_id: str) -> None:
    """
    FastAPI dependency throttling payment-intent creation per client.

    Keyed by session, student and client fingerprint. Redis failures fail open.
    """
    if not settings.rate_limit_enabled:
        return

    store: WindowStore = request.app.state.rate_limit_store
    student_id = await _student_id_from_body(request)
    key = payment_intent_key(
        settings.rate_limit_namespace,
        session_id,
        student_id,
        client_fingerprint(client_ip(request), request.headers.get("user-agent")),
    )

    try:
        decision = await asyncio.to_thread(
            store.hit, key, settings.payment_intent_rate_limit, settings.payment_intent_rate_window_s
        )
    except redis.RedisError as exc:
        rl_eval_errors.labels(bucket=BUCKET_PAYMENT_INTENT).inc()
        logger.warning("Rate-limit store unavailable, allowing request: %s", exc)
        return

    set_rate_headers(
        response,
        decision.remaining,
        decision.limit,
        decision.reset_epoch_s,
        decision.retry_after_s if not decision.allowed else None,
    )

    if decision.allowed:
        rl_decisions.labels(bucket=BUCKET_PAYMENT_INTENT, action="allow").inc()
        return

    rl_decisions.labels(bucket=BUCKET_PAYMENT_INTENT, action="block").inc()
    rl_retry_after.labels(bucket=BUCKET_PAYMENT_INTENT).observe(decision.retry_after_s)
    logger.info(
        "Payment-intent requests throttled for session %s",
        session_id,
        extra={"session_id": session_id, "retry_after_s": decision.retry_after_s},
    )
    raise RateLimitedException(
        decision.retry_after_s,
        "Too many payment requests. Please wait a moment and try again.",
        reason="client_throttled",
    )
