"""Retry delay policy: exponential backoff with a server-hint override and jitter."""

from __future__ import annotations

import random
from collections.abc import Callable

from .config import INITIAL_BACKOFF_MS, JITTER_MAX, JITTER_MIN, MAX_BACKOFF_MS, MAX_RETRIES

JitterFn = Callable[[float], int]

BACKOFF_CONFIG: dict[str, int] = {
    "MAX_RETRIES": MAX_RETRIES,
    "INITIAL_BACKOFF_MS": INITIAL_BACKOFF_MS,
    "MAX_BACKOFF_MS": MAX_BACKOFF_MS,
}


def add_jitter(base_ms: float) -> int:
    """Spread ``base_ms`` by a uniform +/-25% factor, rounded to whole ms."""
    factor = random.uniform(JITTER_MIN, JITTER_MAX)
    return max(0, round(base_ms * factor))


def parse_retry_after(value: str | None) -> int | None:
    """Return the ``Retry-After`` hint in seconds, or None if not an integer."""
    if value is None:
        return None
    text = str(value).strip()
    if not (text.isascii() and text.isdigit()):
        return None
    return int(text)


def calculate_backoff(
    attempt: int,
    retry_after: str | None = None,
    jitter: JitterFn = add_jitter,
) -> int:
    """Compute the delay in milliseconds before retry number ``attempt``.

    Parameters
    ----------
    attempt : int
        Zero-based attempt counter.
    retry_after : str, optional
        Raw ``Retry-After`` header. A valid integer number of seconds always
        wins over the exponential schedule.
    jitter : callable
        Maps the base delay to the final delay. Tests pass an identity.

    Returns
    -------
    int
        Delay in milliseconds.
    """
    hint = parse_retry_after(retry_after)
    if hint is not None:
        return jitter(hint * 1000)
    base = min(INITIAL_BACKOFF_MS * (2**attempt), MAX_BACKOFF_MS)
    return jitter(base)
