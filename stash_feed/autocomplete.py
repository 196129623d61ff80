"""TTL cache for autocomplete results with a periodic sweep task."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from typing import Any, Awaitable, Callable

from .errors import AbortedError
from .models.cache import CacheEntry

logger = logging.getLogger(__name__)

FetchFn = Callable[[], Awaitable[Any]]

# result of a shared fetch whose owner gave up
_ABANDONED = object()


def _escape(part: str) -> str:
    return part.replace("\\", "\\\\").replace(":", "\\:")


def make_key(kind: str, term: str, limit: int) -> str:
    """``kind:term:limit`` with ``\\`` and ``:`` escaped in kind and term."""
    return f"{_escape(kind)}:{_escape(term)}:{int(limit)}"


class AutocompleteCache:
    """Memoizes ``fetch_fn`` results per (kind, term, limit).

    Empty terms are never cached. Concurrent misses on one key share a
    single fetch. Entries are kept in store order, so the front of the
    dict is always the oldest.
    """

    def __init__(
        self,
        ttl_s: float = 300.0,
        sweep_interval_s: float = 300.0,
        max_entries: int = 200,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_s = ttl_s
        self.sweep_interval_s = sweep_interval_s
        self.max_entries = max(1, max_entries)
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._pending: dict[str, asyncio.Future] = {}
        self._task: asyncio.Task | None = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def get(self, kind: str, term: str, limit: int) -> Any | None:
        """Cached payload if fresh, else None."""
        key = make_key(kind, term, limit)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not entry.is_fresh(self._clock(), self.ttl_s):
            self._entries.pop(key, None)
            return None
        return entry.payload

    def put(self, kind: str, term: str, limit: int, payload: Any) -> None:
        if not term.strip():
            return
        key = make_key(kind, term, limit)
        self._entries[key] = CacheEntry(key=key, payload=payload, stored_at=self._clock())
        self._entries.move_to_end(key)

    async def get_or_fetch(self, kind: str, term: str, limit: int, fetch_fn: FetchFn) -> Any:
        """Return the cached result for the key or run ``fetch_fn`` once.

        A failing fetch stores nothing and the exception propagates to
        every waiter. When the fetch is aborted or cancelled by the caller
        that started it, each waiter runs its own ``fetch_fn`` instead, so
        one caller's cancellation never reaches another.
        """
        if not term.strip():
            return await fetch_fn()

        key = make_key(kind, term, limit)
        while True:
            cached = self.get(kind, term, limit)
            if cached is not None:
                return cached
            pending = self._pending.get(key)
            if pending is None:
                break
            payload = await asyncio.shield(pending)
            if payload is not _ABANDONED:
                return payload

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        try:
            payload = await fetch_fn()
        except (AbortedError, asyncio.CancelledError):
            future.set_result(_ABANDONED)
            raise
        except BaseException as exc:
            future.set_exception(exc)
            # consumed here so an unawaited future does not warn
            future.exception()
            raise
        else:
            self.put(kind, term, limit, payload)
            future.set_result(payload)
            return payload
        finally:
            self._pending.pop(key, None)

    def sweep(self) -> int:
        """Drop expired entries, then the oldest until under the cap."""
        now = self._clock()
        stale = [k for k, e in self._entries.items() if not e.is_fresh(now, self.ttl_s)]
        for key in stale:
            self._entries.pop(key, None)
        removed = len(stale)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
            removed += 1
        if removed:
            logger.debug("Autocomplete sweep removed %d entries", removed)
        return removed

    def invalidate(self, kind: str | None = None) -> None:
        if kind is None:
            self._entries.clear()
            return
        prefix = f"{_escape(kind)}:"
        for key in [k for k in self._entries if k.startswith(prefix)]:
            self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _sweep_loop(self) -> None:
        logger.info("Starting autocomplete sweep loop (interval=%ss)", self.sweep_interval_s)
        while True:
            try:
                await asyncio.sleep(self.sweep_interval_s)
                self.sweep()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Autocomplete sweep loop error")


__all__ = ["AutocompleteCache", "make_key"]
