"""Central configuration for stash_feed."""

from __future__ import annotations

import logging
import os

from .models.settings import Settings

logger = logging.getLogger(__name__)


def _read_int(name: str, default: int, minimum: int = 1) -> int:
    """Read a positive integer from the environment.

    Args:
        name: Environment variable name.
        default: Value used when the variable is unset or invalid.
        minimum: Smallest accepted value; anything lower falls back.

    Returns:
        Parsed integer or ``default``.

    Example:
        >>> os.environ["FEED_PAGE_SIZE"] = "30"
        >>> _read_int("FEED_PAGE_SIZE", 20)
        30
    """
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= minimum else default


def _read_float(name: str, default: float) -> float:
    try:
        value = float(os.environ.get(name, str(default)) or default)
    except ValueError:
        return default
    return value if value > 0 else default


def _read_settings() -> Settings:
    """Read all configuration from environment variables.

    Returns:
        Settings object with all configuration values.

    Note:
        Invalid numeric values fall back to sensible defaults.
    """
    url = (os.environ.get("STASH_URL") or "http://localhost:9999").rstrip("/")
    api_key = os.environ.get("STASH_API_KEY") or None

    return Settings(
        STASH_URL=url,
        STASH_API_KEY=api_key,
        STASH_TIMEOUT_S=_read_float("STASH_TIMEOUT_S", 15.0),
        FEED_PAGE_SIZE=_read_int("FEED_PAGE_SIZE", 20),
        SHORT_FORM_WINDOW=_read_int("SHORT_FORM_WINDOW", 24),
        SHORT_FORM_MAX_DURATION_S=_read_int("SHORT_FORM_MAX_DURATION_S", 120),
        FANOUT_PAGES=_read_int("FANOUT_PAGES", 3),
        AUTOCOMPLETE_TTL_S=_read_float("AUTOCOMPLETE_TTL_S", 300.0),
        AUTOCOMPLETE_SWEEP_S=_read_float("AUTOCOMPLETE_SWEEP_S", 300.0),
        AUTOCOMPLETE_MAX_ENTRIES=_read_int("AUTOCOMPLETE_MAX_ENTRIES", 200),
        MEMBERSHIP_CACHE_SIZE=_read_int("MEMBERSHIP_CACHE_SIZE", 500),
    )


settings = _read_settings()


def validate_settings(cfg: Settings | None = None) -> None:
    """Log warnings for configuration that works but is probably a mistake."""
    cfg = cfg or settings
    if not cfg.STASH_URL.startswith(("http://", "https://")):
        logger.warning("STASH_URL %r has no http(s) scheme", cfg.STASH_URL)
    if cfg.SHORT_FORM_WINDOW < cfg.FEED_PAGE_SIZE:
        logger.warning(
            "SHORT_FORM_WINDOW (%d) is smaller than FEED_PAGE_SIZE (%d); "
            "every short-form call will fetch a larger page",
            cfg.SHORT_FORM_WINDOW,
            cfg.FEED_PAGE_SIZE,
        )
    if cfg.AUTOCOMPLETE_SWEEP_S > cfg.AUTOCOMPLETE_TTL_S * 4:
        logger.warning(
            "AUTOCOMPLETE_SWEEP_S is much larger than AUTOCOMPLETE_TTL_S; "
            "expired entries will linger"
        )


__all__ = ["Settings", "settings", "validate_settings"]
