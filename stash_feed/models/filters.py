"""Filter dataclasses: caller-facing FilterSpec and the canonical query form."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping

MODIFIER_INCLUDES = "INCLUDES"
MODIFIER_INCLUDES_ALL = "INCLUDES_ALL"

# Stash takes these criteria as [ID!] (strings); the rest as [Int!].
STRING_ID_FIELDS = frozenset({"tags", "scene_tags", "studios"})

ORIENTATIONS = ("landscape", "portrait", "square")


@dataclass(frozen=True)
class FilterSpec:
    """One user-initiated fetch.

    ID tuples are already normalized (non-negative, de-duplicated). Build it
    with ``normalizer.build_filter_spec`` from loose input.

    ``criteria`` keeps the caller's own structured criterion for ``tags``,
    ``performers`` or ``studios`` (modifier, excludes, depth) when one was
    given instead of a bare ID list; it is sent as-is.
    """

    query: str = ""
    tags: tuple[int, ...] = ()
    performers: tuple[int, ...] = ()
    studios: tuple[int, ...] = ()
    criteria: Mapping[str, IdCriterion] = field(default_factory=dict)
    saved_filter_id: str | None = None
    shuffle: bool = False
    offset: int = 0
    limit: int = 20
    sort_seed: str | None = None
    short_form: bool = False
    max_duration: int | None = None
    orientations: tuple[str, ...] = ()
    include_scenes_without_markers: bool = False

    def has_narrowing_filter(self) -> bool:
        return bool(
            self.tags
            or self.performers
            or self.studios
            or self.criteria
            or self.saved_filter_id
            or self.query.strip()
        )

    def needs_client_filter(self) -> bool:
        return bool(self.short_form or self.max_duration or self.orientations)

    def with_seed(self, seed: str) -> FilterSpec:
        return replace(self, sort_seed=seed)

    def advanced(self, consumed: int, seed: str | None) -> FilterSpec:
        """Spec for the next page of the same shuffle session."""
        return replace(self, offset=self.offset + max(0, consumed), sort_seed=seed)


@dataclass(frozen=True)
class IdCriterion:
    value: tuple[int, ...]
    modifier: str = MODIFIER_INCLUDES
    excludes: tuple[int, ...] = ()
    depth: int | None = None

    def to_variables(self, as_string: bool) -> dict[str, Any]:
        conv = str if as_string else int
        out: dict[str, Any] = {
            "value": [conv(v) for v in self.value],
            "modifier": self.modifier,
        }
        if self.excludes:
            out["excludes"] = [conv(v) for v in self.excludes]
        if self.depth is not None:
            out["depth"] = self.depth
        return out


@dataclass(frozen=True)
class CanonicalFilter:
    """Query parameters in the shape the backend expects.

    ``criteria`` holds the ID-list fields; a missing key means "no
    constraint". ``extra`` carries every other object-filter field verbatim.
    ``find_extra`` carries find-filter fields from a saved preset.
    """

    query: str | None = None
    criteria: Mapping[str, IdCriterion] = field(default_factory=dict)
    extra: Mapping[str, Any] = field(default_factory=dict)
    find_extra: Mapping[str, Any] = field(default_factory=dict)

    def object_filter(self) -> dict[str, Any]:
        out: dict[str, Any] = dict(self.extra)
        for name, criterion in self.criteria.items():
            out[name] = criterion.to_variables(name in STRING_ID_FIELDS)
        return out

    def with_extra(self, fragment: Mapping[str, Any]) -> CanonicalFilter:
        if not fragment:
            return self
        merged = dict(self.extra)
        merged.update(fragment)
        return replace(self, extra=merged)

    def with_criterion(self, name: str, criterion: IdCriterion | None) -> CanonicalFilter:
        merged = dict(self.criteria)
        if criterion is None:
            merged.pop(name, None)
        else:
            merged[name] = criterion
        return replace(self, criteria=merged)
