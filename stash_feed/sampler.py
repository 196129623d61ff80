"""Random page selection over a catalog known only by its count."""

from __future__ import annotations

import logging
import math
import random
from typing import Awaitable, Callable

from .cancellation import CancellationToken, is_cancelled
from .errors import AbortedError, ResponseError, TransportError

logger = logging.getLogger(__name__)

CountFn = Callable[[], Awaitable[int]]


def total_pages(total_count: int, page_size: int) -> int:
    """Number of pages for ``total_count`` items; 0 when there are none."""
    if total_count <= 0:
        return 0
    return math.ceil(total_count / max(1, page_size))


def page_for_offset(offset: int, page_size: int) -> int:
    """1-based page that contains ``offset`` under deterministic paging."""
    return max(0, offset) // max(1, page_size) + 1


class RandomPageSampler:
    """Picks a uniformly random page from a cheap count query.

    The draw is uniform over pages, not over items, so items on a short
    last page are slightly over-represented.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    async def pick_page(
        self,
        count_fn: CountFn,
        page_size: int,
        token: CancellationToken | None = None,
    ) -> int:
        """Return a page in ``[1, ceil(total/page_size)]``; 1 on any failure."""
        if is_cancelled(token):
            return 1
        try:
            total = await count_fn()
        except AbortedError:
            return 1
        except (TransportError, ResponseError) as exc:
            if not is_cancelled(token):
                logger.warning("pick_page failed: %s", exc)
            return 1
        if is_cancelled(token):
            return 1

        pages = total_pages(total, page_size)
        if pages <= 1:
            return 1
        return self._rng.randint(1, pages)


__all__ = ["RandomPageSampler", "total_pages", "page_for_offset", "CountFn"]
