from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass
class Decision:
    allowed: bool
    retry_after_s: float
    remaining: int
    limit: int
    reset_epoch_s: float


@dataclass(frozen=True)
class WindowEntry:
    count: int
    reset_at_s: float


def fixed_window_decide(
    now_s: float,
    entry: Optional[WindowEntry],
    limit: int,
    window_s: float,
) -> Tuple[WindowEntry, Decision]:
    """
    Fixed-window counter pure decision function.

    Args:
        now_s: current wall time in seconds (epoch)
        entry: stored counter for the key, or None if new
        limit: requests permitted per window
        window_s: window length in seconds

    Returns:
        (new_entry, Decision). Rejected requests do not consume the window.
    """
    if entry is None or now_s >= entry.reset_at_s:
        entry = WindowEntry(count=0, reset_at_s=now_s + window_s)

    if limit <= 0 or entry.count >= limit:
        retry_after = max(0.0, entry.reset_at_s - now_s)
        decision = Decision(False, retry_after_s=retry_after, remaining=0, limit=max(limit, 0), reset_epoch_s=entry.reset_at_s)
        return entry, decision

    new_entry = WindowEntry(count=entry.count + 1, reset_at_s=entry.reset_at_s)
    decision = Decision(
        True,
        retry_after_s=0.0,
        remaining=limit - new_entry.count,
        limit=limit,
        reset_epoch_s=new_entry.reset_at_s,
    )
    return new_entry, decision
