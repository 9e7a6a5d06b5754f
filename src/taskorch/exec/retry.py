from __future__ import annotations

from collections.abc import Sequence


def backoff_for_attempt(attempt_idx: int, backoff: Sequence[float], default: float) -> float:
    """
    Return backoff seconds for retry attempt index.

    attempt_idx is zero-based for retries: 0 means first retry wait. Without
    per-task values every retry waits the fixed default.
    """
    if backoff:
        return float(backoff[min(attempt_idx, len(backoff) - 1)])
    return float(default)
