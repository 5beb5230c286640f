from __future__ import annotations

import time
import typing as tp

from ._models import CacheEntry, Freshness

__all__ = ("evaluate_freshness",)


def evaluate_freshness(
    entry: tp.Optional[CacheEntry],
    ttl: tp.Union[int, float],
    now: tp.Optional[float] = None,
) -> Freshness:
    """
    Classify a stored entry against the server TTL.

    An entry whose age equals the TTL is still fresh; it becomes stale only
    once the age is strictly greater.
    """
    if entry is None:
        return Freshness.ABSENT
    now = time.time() if now is None else now
    if entry.age(now) <= ttl:
        return Freshness.FRESH
    return Freshness.STALE
