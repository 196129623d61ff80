"""Configuration dataclass."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Settings:
    """Configuration settings for stash_feed."""

    STASH_URL: str
    STASH_API_KEY: str | None
    STASH_TIMEOUT_S: float
    FEED_PAGE_SIZE: int
    SHORT_FORM_WINDOW: int
    SHORT_FORM_MAX_DURATION_S: int
    FANOUT_PAGES: int
    AUTOCOMPLETE_TTL_S: float
    AUTOCOMPLETE_SWEEP_S: float
    AUTOCOMPLETE_MAX_ENTRIES: int
    MEMBERSHIP_CACHE_SIZE: int
