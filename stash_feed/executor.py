"""Runs one page query against a Stash catalog and classifies the outcome."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from . import queries
from .cancellation import CancellationToken, is_cancelled
from .errors import AbortedError, ResponseError, TransportError
from .graphql import GraphQLClient
from .models.filters import CanonicalFilter
from .models.results import Item, PageRequest, SampleResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogKind:
    """Where a catalog lives in the schema."""

    name: str
    document: str
    count_document: str
    root_field: str
    items_field: str
    filter_variable: str


MARKERS = CatalogKind(
    name="scene_markers",
    document=queries.FIND_SCENE_MARKERS,
    count_document=queries.GET_MARKER_COUNT,
    root_field="findSceneMarkers",
    items_field="scene_markers",
    filter_variable="scene_marker_filter",
)

SCENES = CatalogKind(
    name="scenes",
    document=queries.FIND_SCENES,
    count_document=queries.GET_SCENE_COUNT,
    root_field="findScenes",
    items_field="scenes",
    filter_variable="scene_filter",
)


def _as_int(value: object) -> int:
    try:
        return max(0, int(value))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0


class QueryExecutor:
    def __init__(self, client: GraphQLClient, kind: CatalogKind = MARKERS):
        self.client = client
        self.kind = kind

    def _variables(self, request: PageRequest, canonical: CanonicalFilter) -> dict[str, Any]:
        return {
            "filter": request.find_filter(canonical.query, **canonical.find_extra),
            self.kind.filter_variable: canonical.object_filter(),
        }

    def _unpack(self, data: dict[str, Any]) -> tuple[list[Item], int]:
        root = data.get(self.kind.root_field) or {}
        items = root.get(self.kind.items_field) or []
        return [i for i in items if isinstance(i, dict)], _as_int(root.get("count"))

    async def count(
        self, canonical: CanonicalFilter, token: CancellationToken | None = None
    ) -> int:
        """Total matches for ``canonical``; raises on failure."""
        variables = self._variables(PageRequest(1, 1, "created_at"), canonical)
        data = await self.client.query(self.kind.count_document, variables, token)
        _, total = self._unpack(data)
        return total

    async def fetch_page(
        self,
        request: PageRequest,
        canonical: CanonicalFilter,
        token: CancellationToken | None = None,
    ) -> tuple[list[Item], int]:
        """One raw page fetch; raises on failure."""
        data = await self.client.query(
            self.kind.document, self._variables(request, canonical), token
        )
        return self._unpack(data)

    async def execute(
        self,
        request: PageRequest,
        canonical: CanonicalFilter,
        token: CancellationToken | None = None,
    ) -> SampleResult:
        """Fetch ``request`` and retry once from page 1 on a stale page.

        A page past the end (count > 0 but no items) happens when the
        catalog shrinks between the count and the page query.
        """
        method = f"execute[{self.kind.name}]"
        seed = request.sort
        try:
            if is_cancelled(token):
                return SampleResult.cancelled(seed)
            items, total = await self.fetch_page(request, canonical, token)
            if is_cancelled(token):
                return SampleResult.cancelled(seed)

            if total > 0 and not items and request.page != 1:
                logger.debug(
                    "%s: page %d empty of %d, retrying page 1", method, request.page, total
                )
                items, total = await self.fetch_page(request.first_page(), canonical, token)
                if is_cancelled(token):
                    return SampleResult.cancelled(seed)
        except AbortedError:
            return SampleResult.cancelled(seed)
        except (TransportError, ResponseError) as exc:
            if is_cancelled(token):
                return SampleResult.cancelled(seed)
            logger.warning("%s failed: %s", method, exc)
            return SampleResult.failed(exc, seed)

        if is_cancelled(token):
            return SampleResult.cancelled(seed)
        return SampleResult(items=items, total_count=total, sort_seed=seed)


__all__ = ["CatalogKind", "MARKERS", "SCENES", "QueryExecutor"]
