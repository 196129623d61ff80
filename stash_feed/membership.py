"""Bounded LRU of "does this tag/performer have any markers" answers."""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from typing import Hashable, Iterable

from . import queries
from .cancellation import CancellationToken, is_cancelled
from .errors import AbortedError, ResponseError, TransportError
from .graphql import GraphQLClient

logger = logging.getLogger(__name__)

BATCH_SIZE = 5


class MembershipLRUCache:
    def __init__(self, capacity: int = 500):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._data: OrderedDict[Hashable, bool] = OrderedDict()

    def get(self, key: Hashable) -> bool | None:
        if key not in self._data:
            return None
        self._data.move_to_end(key)
        return self._data[key]

    def set(self, key: Hashable, value: bool) -> None:
        if key in self._data:
            self._data.move_to_end(key)
        elif len(self._data) >= self.capacity:
            self._data.popitem(last=False)
        self._data[key] = bool(value)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def clear(self) -> None:
        self._data.clear()


class MembershipChecker:
    """Answers "has at least one marker" for batches of tag or performer ids."""

    def __init__(self, client: GraphQLClient, capacity: int = 500):
        self.client = client
        self.cache = MembershipLRUCache(capacity)

    @staticmethod
    def _filter(kind: str, ident: int) -> dict:
        if kind == "tags":
            return {"tags": {"value": [str(ident)], "modifier": "INCLUDES"}}
        return {"performers": {"value": [ident], "modifier": "INCLUDES_ALL"}}

    async def _check_one(
        self, kind: str, ident: int, token: CancellationToken | None
    ) -> bool | None:
        variables = {
            "filter": {"per_page": 1, "page": 1},
            "scene_marker_filter": self._filter(kind, ident),
        }
        try:
            data = await self.client.query(queries.GET_MARKER_COUNT, variables, token)
        except AbortedError:
            return None
        except (TransportError, ResponseError) as exc:
            if not is_cancelled(token):
                logger.warning("membership check for %s %s failed: %s", kind, ident, exc)
            return None
        count = (data.get("findSceneMarkers") or {}).get("count") or 0
        return count > 0

    async def _with_items(
        self, kind: str, ids: Iterable[int], token: CancellationToken | None
    ) -> set[int]:
        """IDs with at least one marker; empty once ``token`` is aborted."""
        if is_cancelled(token):
            return set()
        wanted = list(dict.fromkeys(ids))
        found: set[int] = set()
        unknown: list[int] = []
        for ident in wanted:
            cached = self.cache.get((kind, ident))
            if cached is None:
                unknown.append(ident)
            elif cached:
                found.add(ident)

        for start in range(0, len(unknown), BATCH_SIZE):
            batch = unknown[start : start + BATCH_SIZE]
            answers = await asyncio.gather(
                *(self._check_one(kind, ident, token) for ident in batch)
            )
            for ident, answer in zip(batch, answers):
                if answer is None:
                    continue
                self.cache.set((kind, ident), answer)
                if answer:
                    found.add(ident)
            if is_cancelled(token):
                return set()
        return found

    async def tags_with_items(
        self, ids: Iterable[int], token: CancellationToken | None = None
    ) -> set[int]:
        return await self._with_items("tags", ids, token)

    async def performers_with_items(
        self, ids: Iterable[int], token: CancellationToken | None = None
    ) -> set[int]:
        return await self._with_items("performers", ids, token)


__all__ = ["MembershipLRUCache", "MembershipChecker", "BATCH_SIZE"]
