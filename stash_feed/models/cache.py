"""Cache-related dataclasses."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class CacheEntry:
    """Cached autocomplete payload with the time it was stored."""

    key: str
    payload: object
    stored_at: float

    def is_fresh(self, now: float, ttl_s: float) -> bool:
        return (now - self.stored_at) < ttl_s
