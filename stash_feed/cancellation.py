"""Cooperative cancellation token passed into every public entry point."""

from __future__ import annotations

import asyncio

from .errors import AbortedError


class CancellationToken:
    """One-way abort flag shared between a caller and in-flight requests.

    A token starts live. ``cancel()`` flips it for good; code checks
    ``cancelled`` at its checkpoints and ``wait()`` lets a request race
    against the abort.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AbortedError()


def is_cancelled(token: CancellationToken | None) -> bool:
    """Return True when ``token`` is set and already aborted."""
    return token is not None and token.cancelled


__all__ = ["CancellationToken", "is_cancelled"]
