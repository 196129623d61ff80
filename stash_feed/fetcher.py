"""Windowed and fan-out sampling for predicates applied on the client."""

from __future__ import annotations

import asyncio
import logging
import random

from .cancellation import CancellationToken, is_cancelled
from .errors import AbortedError, ResponseError, TransportError
from .executor import QueryExecutor
from .models.filters import CanonicalFilter
from .models.results import Item, PageRequest, SampleResult
from .predicates import Predicate
from .sampler import total_pages

logger = logging.getLogger(__name__)


def _dedupe(pages: list[list[Item]]) -> list[Item]:
    """Merge pages in order, keeping the first item seen for each id."""
    seen: set[str] = set()
    merged: list[Item] = []
    for page in pages:
        for item in page:
            ident = item.get("id")
            if ident is not None:
                key = str(ident)
                if key in seen:
                    continue
                seen.add(key)
            merged.append(item)
    return merged


class MultiPageDeduplicatingFetcher:
    """Samples items that must pass a predicate.

    ``sample_filtered`` reads one window per call and reports how many
    backend items it inspected so the next call resumes right after them.
    ``sample_pages`` is the fallback for predicates the backend cannot
    apply: it reads several random windows and merges them by id.
    """

    def __init__(
        self,
        executor: QueryExecutor,
        window: int = 24,
        page_count: int = 3,
        rng: random.Random | None = None,
    ):
        if window < 1 or page_count < 1:
            raise ValueError("window and page_count must be >= 1")
        self.executor = executor
        self.window = window
        self.page_count = page_count
        self._rng = rng or random.Random()

    def window_for(self, limit: int) -> int:
        """Page size for one ``sample_filtered`` call, always above ``limit``."""
        if limit < self.window:
            return self.window
        return limit + self.window

    async def _max_page(
        self, canonical: CanonicalFilter, token: CancellationToken | None, method: str
    ) -> tuple[int, int] | SampleResult:
        try:
            total = await self.executor.count(canonical, token)
        except AbortedError:
            return SampleResult.cancelled()
        except (TransportError, ResponseError) as exc:
            if is_cancelled(token):
                return SampleResult.cancelled()
            logger.warning("%s failed: %s", method, exc)
            return SampleResult.failed(exc)
        if is_cancelled(token):
            return SampleResult.cancelled()
        return total, total_pages(total, self.window)

    async def sample_filtered(
        self,
        predicate: Predicate | None,
        limit: int,
        offset: int,
        seed: str,
        token: CancellationToken | None = None,
        canonical: CanonicalFilter | None = None,
    ) -> SampleResult:
        """Read the window containing ``offset`` and keep up to ``limit`` passes."""
        if is_cancelled(token):
            return SampleResult.cancelled(seed)
        canonical = canonical or CanonicalFilter()
        if predicate is not None:
            canonical = canonical.with_extra(predicate.native_filter())

        counted = await self._max_page(canonical, token, "sample_filtered")
        if isinstance(counted, SampleResult):
            counted.sort_seed = seed
            return counted
        total, max_page = counted
        if max_page == 0:
            return SampleResult(total_count=0, sort_seed=seed)
        offset = max(0, offset)
        if offset >= total:
            return SampleResult(total_count=total, sort_seed=seed)

        window = self.window_for(limit)
        request = PageRequest(offset // window + 1, window, seed)
        start = offset % window
        result = await self.executor.execute(request, canonical, token)
        if not result.ok:
            return result

        picked: list[Item] = []
        inspected = 0
        for item in result.items[start:]:
            if len(picked) >= limit:
                break
            inspected += 1
            if predicate is None or predicate(item):
                picked.append(item)

        return SampleResult(
            items=picked,
            total_count=total,
            sort_seed=seed,
            unfiltered_consumed=inspected,
        )

    async def sample_pages(
        self,
        predicate: Predicate,
        limit: int,
        seed: str,
        token: CancellationToken | None = None,
        canonical: CanonicalFilter | None = None,
        pages: list[int] | None = None,
    ) -> SampleResult:
        """Fetch several random windows concurrently, merge, filter and shuffle."""
        if is_cancelled(token):
            return SampleResult.cancelled(seed)
        canonical = (canonical or CanonicalFilter()).with_extra(predicate.native_filter())

        counted = await self._max_page(canonical, token, "sample_pages")
        if isinstance(counted, SampleResult):
            counted.sort_seed = seed
            return counted
        total, max_page = counted
        if max_page == 0:
            return SampleResult(total_count=0, sort_seed=seed)

        if pages is None:
            pages = self._rng.sample(range(1, max_page + 1), min(self.page_count, max_page))
        else:
            pages = sorted({p for p in pages if 1 <= p <= max_page}) or [1]

        results = await asyncio.gather(
            *(
                self.executor.execute(PageRequest(p, self.window, seed), canonical, token)
                for p in pages
            )
        )
        if is_cancelled(token) or any(r.aborted for r in results):
            return SampleResult.cancelled(seed)

        ok = [r for r in results if r.ok]
        if not ok:
            return SampleResult.failed(results[0].error, seed)  # type: ignore[arg-type]

        merged = _dedupe([r.items for r in ok])
        passing = [item for item in merged if predicate(item)]
        self._rng.shuffle(passing)
        return SampleResult(
            items=passing[:limit],
            total_count=total,
            sort_seed=seed,
            unfiltered_consumed=len(merged),
        )


__all__ = ["MultiPageDeduplicatingFetcher"]
