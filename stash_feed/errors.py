"""Error taxonomy for the feed engine.

Read paths catch ``TransportError`` and ``ResponseError`` and degrade to an
empty result. Write paths log and re-raise. ``AbortedError`` is never logged.
"""

from __future__ import annotations


class StashError(Exception):
    """Base class for every error raised by stash_feed."""


class AbortedError(StashError):
    """The caller cancelled the operation through its token."""

    def __init__(self, message: str = "request was aborted") -> None:
        super().__init__(message)


class TransportError(StashError):
    """The GraphQL endpoint could not be reached or answered garbage."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class ResponseError(StashError):
    """The endpoint returned a well-formed GraphQL ``errors`` payload."""

    def __init__(self, messages: list[str]) -> None:
        self.messages = list(messages)
        super().__init__("; ".join(self.messages) or "GraphQL error")


class ValidationError(StashError):
    """A write operation was called with malformed arguments."""


__all__ = [
    "StashError",
    "AbortedError",
    "TransportError",
    "ResponseError",
    "ValidationError",
]
