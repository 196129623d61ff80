"""Public entry points: feed sampling, autocomplete and small writes."""

from __future__ import annotations

import logging
import math
import random
from typing import Any, Mapping

from . import queries
from .autocomplete import AutocompleteCache
from .cancellation import CancellationToken, is_cancelled
from .config import settings as default_settings
from .errors import AbortedError, ResponseError, StashError, TransportError, ValidationError
from .executor import MARKERS, SCENES, QueryExecutor
from .fetcher import MultiPageDeduplicatingFetcher
from .graphql import GraphQLClient
from .membership import MembershipChecker
from .models.filters import CanonicalFilter, FilterSpec
from .models.results import FeedPage, Item, PageRequest, SampleResult
from .models.settings import Settings
from .normalizer import build_canonical_filter, coerce_id
from .predicates import from_spec
from .sampler import RandomPageSampler, page_for_offset
from .seeds import SortSeedManager, generate_sort_seed

logger = logging.getLogger(__name__)

AUTOCOMPLETE_KINDS = ("tags", "performers")
_SUGGESTION_MIN_MARKERS = 10


def _require_id(value: object, what: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationError(f"{what} is required")
    return text


class StashFeedEngine:
    """One engine per Stash connection.

    Call ``start()`` (or use ``async with``) to run the autocomplete sweep
    and ``stop()`` to cancel it. Nothing is shared between instances.
    """

    def __init__(
        self,
        client: GraphQLClient,
        settings: Settings | None = None,
        rng: random.Random | None = None,
    ):
        cfg = settings or default_settings
        self.client = client
        self.settings = cfg
        self._rng = rng or random.Random()
        self.seeds = SortSeedManager(self._rng)
        self.sampler = RandomPageSampler(self._rng)
        self.markers = QueryExecutor(client, MARKERS)
        self.scenes = QueryExecutor(client, SCENES)
        self.fetcher = MultiPageDeduplicatingFetcher(
            self.scenes,
            window=cfg.SHORT_FORM_WINDOW,
            page_count=cfg.FANOUT_PAGES,
            rng=self._rng,
        )
        self.autocomplete = AutocompleteCache(
            ttl_s=cfg.AUTOCOMPLETE_TTL_S,
            sweep_interval_s=cfg.AUTOCOMPLETE_SWEEP_S,
            max_entries=cfg.AUTOCOMPLETE_MAX_ENTRIES,
        )
        self.membership = MembershipChecker(client, cfg.MEMBERSHIP_CACHE_SIZE)

    def start(self) -> None:
        self.autocomplete.start()

    async def stop(self) -> None:
        await self.autocomplete.stop()

    async def __aenter__(self) -> StashFeedEngine:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # -- sampling ---------------------------------------------------------

    async def fetch_sample(
        self, spec: FilterSpec, token: CancellationToken | None = None
    ) -> FeedPage:
        """Fetch one feed page for ``spec``.

        Pass ``FeedPage.next_filter`` back in to continue the same session;
        it carries the sort seed and the next offset.
        """
        seed = self.seeds.resolve_seed(spec)
        if is_cancelled(token):
            return self._feed_page(spec, SampleResult.cancelled(seed), 0)

        if spec.shuffle:
            result = await self._sample_shuffle(spec, seed, token)
            consumed = spec.limit
        elif spec.needs_client_filter():
            result = await self._sample_short_form(spec, seed, token)
            consumed = result.unfiltered_consumed
        else:
            result = await self._sample_markers(spec, seed, token)
            consumed = spec.limit
        return self._feed_page(spec, result, consumed)

    def _feed_page(self, spec: FilterSpec, result: SampleResult, consumed: int) -> FeedPage:
        seed = result.sort_seed or spec.sort_seed
        if not result.ok:
            consumed = 0
        return FeedPage(
            items=result.items,
            total_count=result.total_count,
            next_filter=spec.advanced(consumed, seed),
            unfiltered_consumed=result.unfiltered_consumed,
            error=result.error,
            aborted=result.aborted,
        )

    async def _pick_page(
        self,
        spec: FilterSpec,
        executor: QueryExecutor,
        canonical: CanonicalFilter,
        token: CancellationToken | None,
        randomize: bool,
    ) -> int:
        if spec.offset or not randomize:
            return page_for_offset(spec.offset, spec.limit)
        return await self.sampler.pick_page(
            lambda: executor.count(canonical, token), spec.limit, token
        )

    async def _sample_markers(
        self, spec: FilterSpec, seed: str, token: CancellationToken | None
    ) -> SampleResult:
        saved = None
        if spec.saved_filter_id:
            saved = await self.get_saved_filter(spec.saved_filter_id, token)
            if is_cancelled(token):
                return SampleResult.cancelled(seed)
        canonical = build_canonical_filter(spec, saved)

        page = await self._pick_page(
            spec, self.markers, canonical, token, randomize=not spec.has_narrowing_filter()
        )
        if is_cancelled(token):
            return SampleResult.cancelled(seed)
        return await self.markers.execute(PageRequest(page, spec.limit, seed), canonical, token)

    async def _sample_shuffle(
        self, spec: FilterSpec, seed: str, token: CancellationToken | None
    ) -> SampleResult:
        canonical = build_canonical_filter(spec)
        if spec.include_scenes_without_markers:
            canonical = canonical.with_extra({"has_markers": "false"})

        page = await self._pick_page(spec, self.scenes, canonical, token, randomize=True)
        if is_cancelled(token):
            return SampleResult.cancelled(seed)
        return await self.scenes.execute(PageRequest(page, spec.limit, seed), canonical, token)

    async def _sample_short_form(
        self, spec: FilterSpec, seed: str, token: CancellationToken | None
    ) -> SampleResult:
        max_duration = spec.max_duration
        if spec.short_form and not max_duration:
            max_duration = self.settings.SHORT_FORM_MAX_DURATION_S
        predicate = from_spec(max_duration, spec.orientations)
        canonical = build_canonical_filter(spec)
        if predicate is not None and not predicate.native:
            return await self.fetcher.sample_pages(
                predicate, spec.limit, seed, token, canonical=canonical
            )
        return await self.fetcher.sample_filtered(
            predicate, spec.limit, spec.offset, seed, token, canonical=canonical
        )

    # -- saved filters ----------------------------------------------------

    async def get_saved_filter(
        self, filter_id: str, token: CancellationToken | None = None
    ) -> dict[str, Any] | None:
        """The saved preset, or None when it is missing or cannot be read."""
        try:
            data = await self.client.query(queries.GET_SAVED_FILTER, {"id": filter_id}, token)
        except AbortedError:
            return None
        except (TransportError, ResponseError) as exc:
            if not is_cancelled(token):
                logger.warning("get_saved_filter failed: %s", exc)
            return None
        found = data.get("findSavedFilter")
        return found if isinstance(found, dict) else None

    async def list_saved_filters(
        self, token: CancellationToken | None = None
    ) -> list[dict[str, Any]]:
        if is_cancelled(token):
            return []
        try:
            data = await self.client.query(queries.GET_SAVED_MARKER_FILTERS, None, token)
        except AbortedError:
            return []
        except (TransportError, ResponseError) as exc:
            if not is_cancelled(token):
                logger.warning("list_saved_filters failed: %s", exc)
            return []
        if is_cancelled(token):
            return []
        return [f for f in data.get("findSavedFilters") or [] if isinstance(f, dict)]

    # -- autocomplete -----------------------------------------------------

    def _autocomplete_variables(self, kind: str, term: str, limit: int) -> dict[str, Any]:
        searching = bool(term)
        find_filter: dict[str, Any] = {
            "per_page": limit * 3 if searching else max(limit, 20),
            "page": 1,
        }
        if searching:
            find_filter["q"] = term
        else:
            find_filter["sort"] = generate_sort_seed(self._rng)

        if kind == "tags":
            tag_filter: dict[str, Any] = {}
            if not searching:
                tag_filter["marker_count"] = {
                    "value": _SUGGESTION_MIN_MARKERS,
                    "modifier": "GREATER_THAN",
                }
            return {"filter": find_filter, "tag_filter": tag_filter}
        return {
            "filter": find_filter,
            "performer_filter": {"scene_count": {"value": 0, "modifier": "GREATER_THAN"}},
        }

    async def search_autocomplete(
        self,
        kind: str,
        term: str,
        limit: int = 10,
        token: CancellationToken | None = None,
    ) -> list[Item]:
        """Tag or performer suggestions for ``term``; [] on failure.

        An empty term returns random popular entries and is never cached.
        """
        if kind not in AUTOCOMPLETE_KINDS:
            raise ValueError(f"unknown autocomplete kind: {kind!r}")
        if is_cancelled(token):
            return []
        term = (term or "").strip()
        limit = max(1, limit)
        document = queries.FIND_TAGS if kind == "tags" else queries.FIND_PERFORMERS
        root, field = ("findTags", "tags") if kind == "tags" else ("findPerformers", "performers")

        async def fetch() -> list[Item]:
            data = await self.client.query(
                document, self._autocomplete_variables(kind, term, limit), token
            )
            if is_cancelled(token):
                raise AbortedError()
            rows = (data.get(root) or {}).get(field) or []
            return [r for r in rows if isinstance(r, dict)][:limit]

        try:
            return await self.autocomplete.get_or_fetch(kind, term, limit, fetch)
        except AbortedError:
            return []
        except (TransportError, ResponseError) as exc:
            if not is_cancelled(token):
                logger.warning("search_autocomplete[%s] failed: %s", kind, exc)
            return []

    async def tags_with_items(
        self, tag_ids, token: CancellationToken | None = None
    ) -> set[int]:
        return await self.membership.tags_with_items(tag_ids, token)

    async def performers_with_items(
        self, performer_ids, token: CancellationToken | None = None
    ) -> set[int]:
        return await self.membership.performers_with_items(performer_ids, token)

    # -- writes -----------------------------------------------------------

    async def _mutate(self, method: str, document: str, variables: dict[str, Any]) -> dict[str, Any]:
        try:
            return await self.client.mutate(document, variables)
        except StashError:
            logger.exception("%s failed", method)
            raise

    async def update_scene_rating(self, scene_id: str, rating10: float) -> int:
        """Set a 0-10 rating (decimals allowed); returns the stored rating100."""
        scene_id = _require_id(scene_id, "scene_id")
        if isinstance(rating10, bool) or not isinstance(rating10, (int, float)):
            raise ValidationError(f"rating must be a number, got {rating10!r}")
        value = float(rating10) if math.isfinite(rating10) else 0.0
        rating100 = round(min(10.0, max(0.0, value)) * 10)
        await self._mutate(
            "update_scene_rating",
            queries.SCENE_UPDATE,
            {"input": {"id": scene_id, "rating100": rating100}},
        )
        return rating100

    async def add_tag_to_marker(self, marker: Mapping[str, Any], tag_id: str) -> bool:
        """Add ``tag_id`` to a marker; False if it already had the tag."""
        tag_id = _require_id(tag_id, "tag_id")
        if not isinstance(marker, Mapping):
            raise ValidationError("marker must be a mapping")
        marker_id = _require_id(marker.get("id"), "marker id")
        primary = marker.get("primary_tag") or {}
        scene = marker.get("scene") or {}
        primary_id = _require_id(primary.get("id"), "marker primary_tag")
        scene_id = _require_id(scene.get("id"), "marker scene")

        current = [str(t["id"]) for t in marker.get("tags") or [] if t.get("id") is not None]
        if tag_id in current:
            return False

        await self._mutate(
            "add_tag_to_marker",
            queries.SCENE_MARKER_UPDATE,
            {
                "id": marker_id,
                "title": marker.get("title") or "",
                "seconds": marker.get("seconds") or 0,
                "end_seconds": marker.get("end_seconds"),
                "scene_id": scene_id,
                "primary_tag_id": primary_id,
                "tag_ids": current + [tag_id],
            },
        )
        self.autocomplete.invalidate("tags")
        numeric = coerce_id(tag_id)
        if numeric is not None:
            self.membership.cache.set(("tags", numeric), True)
        return True

    async def increment_o_count(self, scene_id: str, times: list[str] | None = None) -> int:
        """Record an O event; returns the new count."""
        scene_id = _require_id(scene_id, "scene_id")
        variables: dict[str, Any] = {"id": scene_id}
        if times:
            variables["times"] = list(times)
        data = await self._mutate("increment_o_count", queries.SCENE_ADD_O, variables)
        return int((data.get("sceneAddO") or {}).get("count") or 0)


__all__ = ["StashFeedEngine", "AUTOCOMPLETE_KINDS"]
