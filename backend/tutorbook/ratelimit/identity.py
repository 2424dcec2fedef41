import hashlib
from typing import Optional

from fastapi import Request

USER_AGENT_PREFIX_CHARS = 20


def client_ip(req: Request) -> str:
    client = getattr(req, "client", None)
    ip = getattr(client, "host", None) if client else None
    if not ip:
        forwarded = req.headers.get("x-forwarded-for", "")
        ip = forwarded.split(",")[0].strip() or "unknown"
    return ip


def client_fingerprint(ip: Optional[str], user_agent: Optional[str]) -> str:
    """
    Coarse client identifier: SHA-256 of IP + leading user-agent characters.

    Used only to spread abuse limits across clients; never an identity claim.
    """
    raw = f"{ip or 'unknown'}{(user_agent or '')[:USER_AGENT_PREFIX_CHARS]}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]


def payment_intent_key(namespace: str, session_id: str, student_id: str, fingerprint: str) -> str:
    return f"{namespace}:payment_intent:{session_id}:{student_id}:{fingerprint}"
