"""Filter normalization.

Saved presets and UI state describe ID fields (tags, performers, ...) in
several shapes. ``normalize_criterion`` classifies the shape first and then
decodes it; anything it does not recognise decodes to "absent" (``None``),
which downstream code treats as "no constraint".
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import replace
from typing import Any, Iterable, Mapping

from .models.filters import (
    MODIFIER_INCLUDES,
    MODIFIER_INCLUDES_ALL,
    ORIENTATIONS,
    CanonicalFilter,
    FilterSpec,
    IdCriterion,
)

logger = logging.getLogger(__name__)

ID_FIELDS = ("tags", "scene_tags", "performers", "scene_performers", "studios")

_DIGITS_RE = re.compile(r"\d+", re.ASCII)
_SIGNED_DIGITS_RE = re.compile(r"-?\d+", re.ASCII)
_TRUE_WORDS = {"true", "yes", "on"}
_FALSE_WORDS = {"false", "no", "off"}


class Shape(enum.Enum):
    ABSENT = "absent"
    BARE_LIST = "bare_list"
    STRUCTURED = "structured"
    WRAPPED = "wrapped"


def classify(raw: object) -> Shape:
    """Decide which encoding an ID field uses.

    - ``[1, "2", {"id": 3}]``                        -> BARE_LIST
    - ``{"value": [1, 2], "modifier": ...}``          -> STRUCTURED
    - ``{"value": {"items": [...], "depth": -1}}``    -> WRAPPED
    - anything else                                   -> ABSENT
    """
    if isinstance(raw, (list, tuple)):
        return Shape.BARE_LIST
    if isinstance(raw, Mapping) and "value" in raw:
        value = raw["value"]
        if isinstance(value, Mapping) and isinstance(value.get("items"), (list, tuple)):
            return Shape.WRAPPED
        if value is None:
            return Shape.ABSENT
        return Shape.STRUCTURED
    return Shape.ABSENT


def coerce_id(raw: object, _nested: bool = False) -> int | None:
    """Return ``raw`` as a non-negative int, or None if it is not one."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, Mapping):
        if _nested:
            return None
        inner = raw.get("id")
        if inner is None:
            inner = raw.get("value")
        return coerce_id(inner, _nested=True)
    if isinstance(raw, int):
        return raw if raw >= 0 else None
    if isinstance(raw, float):
        if raw.is_integer() and raw >= 0:
            return int(raw)
        return None
    if isinstance(raw, str):
        text = raw.strip()
        if _DIGITS_RE.fullmatch(text):
            return int(text)
    return None


def extract_ids(values: object) -> tuple[int, ...]:
    """Normalize a list of loose IDs into unique non-negative ints.

    Example:
        >>> extract_ids([3, "3", {"id": "7"}, "x", -1])
        (3, 7)
    """
    if values is None:
        return ()
    if isinstance(values, (list, tuple, set, frozenset)):
        seq: Iterable[object] = values
    else:
        seq = (values,)
    seen: dict[int, None] = {}
    for entry in seq:
        ident = coerce_id(entry)
        if ident is not None:
            seen.setdefault(ident, None)
    return tuple(seen)


def coerce_depth(raw: object) -> int | None:
    """Collapse the depth encodings Stash presets use into one int.

    ``True`` means "all descendants" (-1), ``False`` means none (0).
    """
    if isinstance(raw, bool):
        return -1 if raw else 0
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    if isinstance(raw, str):
        text = raw.strip().lower()
        if text in _TRUE_WORDS:
            return -1
        if text in _FALSE_WORDS:
            return 0
        if _SIGNED_DIGITS_RE.fullmatch(text):
            return int(text)
    return None


def _modifier(raw: object) -> str:
    if isinstance(raw, str) and raw.strip():
        return raw.strip()
    return MODIFIER_INCLUDES


def _first(mapping: Mapping[str, Any], *keys: str) -> object:
    for key in keys:
        if mapping.get(key) is not None:
            return mapping[key]
    return None


def _decode(raw: object) -> IdCriterion | None:
    shape = classify(raw)
    if shape is Shape.ABSENT:
        return None
    if shape is Shape.BARE_LIST:
        ids = extract_ids(raw)
        return IdCriterion(value=ids) if ids else None

    if not isinstance(raw, Mapping):
        return None
    value = raw["value"]
    inner: Mapping[str, Any] = {}
    if shape is Shape.WRAPPED:
        inner = value
        value = value["items"]
    ids = extract_ids(value)
    if not ids:
        return None

    excludes_raw = _first(raw, "excludes", "excluded")
    if excludes_raw is None:
        excludes_raw = _first(inner, "excluded", "excludes")
    depth_raw = raw["depth"] if raw.get("depth") is not None else inner.get("depth")
    return IdCriterion(
        value=ids,
        modifier=_modifier(raw.get("modifier")),
        excludes=extract_ids(excludes_raw),
        depth=coerce_depth(depth_raw),
    )


def normalize_criterion(raw: object) -> IdCriterion | None:
    """Decode one ID field; malformed input yields None, never an exception."""
    try:
        return _decode(raw)
    except Exception as exc:
        logger.debug("Dropping undecodable criterion %r: %s", raw, exc)
        return None


def normalize_object_filter(raw: object) -> CanonicalFilter:
    """Normalize a saved preset's object filter.

    ID fields are decoded and dropped when empty; every other key is copied
    through untouched.
    """
    if not isinstance(raw, Mapping):
        return CanonicalFilter()
    criteria: dict[str, IdCriterion] = {}
    extra: dict[str, Any] = {}
    for key, value in raw.items():
        if key in ID_FIELDS:
            criterion = normalize_criterion(value)
            if criterion is not None:
                criteria[key] = criterion
        else:
            extra[key] = value
    return CanonicalFilter(criteria=criteria, extra=extra)


def _field_ids(raw: object) -> tuple[int, ...]:
    criterion = normalize_criterion(raw)
    if criterion is not None:
        return criterion.value
    if isinstance(raw, (int, str)) and not isinstance(raw, bool):
        return extract_ids(raw)
    return ()


def _caller_criterion(raw: object) -> IdCriterion | None:
    """The caller's criterion when given in structured form, else None."""
    if classify(raw) in (Shape.STRUCTURED, Shape.WRAPPED):
        return normalize_criterion(raw)
    return None


def _coerce_bool(raw: object) -> bool:
    if isinstance(raw, str):
        return raw.strip().lower() in _TRUE_WORDS | {"1"}
    return bool(raw)


def _coerce_count(raw: object, default: int, minimum: int) -> int:
    value = coerce_id(raw)
    if value is None or value < minimum:
        return default
    return value


def _optional_str(raw: object) -> str | None:
    if raw is None:
        return None
    text = str(raw).strip()
    return text or None


def _orientations(raw: object) -> tuple[str, ...]:
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, (list, tuple, set, frozenset)):
        return ()
    picked: dict[str, None] = {}
    for entry in raw:
        if isinstance(entry, str) and entry.strip().lower() in ORIENTATIONS:
            picked.setdefault(entry.strip().lower(), None)
    return tuple(picked)


def build_filter_spec(raw: Mapping[str, Any] | None, default_limit: int = 20) -> FilterSpec:
    """Build a FilterSpec from loose caller input (UI state, JSON, CLI).

    Accepts both snake_case and the camelCase keys the feed UI uses.
    """
    raw = raw or {}
    tags = extract_ids(list(_field_ids(raw.get("tags")) + _field_ids(raw.get("primary_tags"))))
    query = raw.get("query", raw.get("q"))
    saved = _first(raw, "saved_filter_id", "savedFilterId")
    seed = _first(raw, "sort_seed", "sortSeed")
    max_duration = coerce_id(_first(raw, "max_duration", "maxDuration"))

    criteria: dict[str, IdCriterion] = {}
    for name in ("tags", "performers", "studios"):
        criterion = _caller_criterion(raw.get(name))
        if criterion is not None:
            criteria[name] = criterion
    if "tags" in criteria:
        # primary tags join the caller's structured tag criterion
        criteria["tags"] = replace(criteria["tags"], value=tags)

    return FilterSpec(
        query=query.strip() if isinstance(query, str) else "",
        tags=tags,
        performers=_field_ids(raw.get("performers")),
        studios=_field_ids(raw.get("studios")),
        criteria=criteria,
        saved_filter_id=_optional_str(saved),
        shuffle=_coerce_bool(_first(raw, "shuffle", "shuffleMode")),
        offset=_coerce_count(raw.get("offset"), 0, 0),
        limit=_coerce_count(raw.get("limit"), default_limit, 1),
        sort_seed=_optional_str(seed) if isinstance(seed, str) else None,
        short_form=_coerce_bool(_first(raw, "short_form", "shortFormMode")),
        max_duration=max_duration or None,
        orientations=_orientations(_first(raw, "orientations", "orientationFilter")),
        include_scenes_without_markers=_coerce_bool(
            _first(raw, "include_scenes_without_markers", "includeScenesWithoutMarkers")
        ),
    )


def _multi_modifier(ids: tuple[int, ...]) -> str:
    return MODIFIER_INCLUDES_ALL if len(ids) == 1 else MODIFIER_INCLUDES


def build_canonical_filter(
    spec: FilterSpec, saved: Mapping[str, Any] | None = None
) -> CanonicalFilter:
    """Merge a FilterSpec with an optional saved preset.

    When a preset was loaded its ID criteria win and the caller's tags and
    performers are ignored. The caller's free-text query overrides the
    preset's ``q``. Studios always apply. A structured criterion the caller
    gave is used verbatim; bare ID lists get the default modifiers.
    """
    base = CanonicalFilter()
    find_extra: dict[str, Any] = {}
    if saved:
        base = normalize_object_filter(saved.get("object_filter"))
        find_raw = saved.get("find_filter")
        if isinstance(find_raw, Mapping):
            find_extra = {
                k: v
                for k, v in find_raw.items()
                if v is not None and k not in ("page", "per_page")
            }

    preset_query = find_extra.pop("q", None)
    query = spec.query.strip() or (preset_query if isinstance(preset_query, str) else "")

    if not saved:
        if "tags" in spec.criteria:
            base = base.with_criterion("tags", spec.criteria["tags"])
        elif spec.tags:
            base = base.with_criterion(
                "tags", IdCriterion(value=spec.tags, modifier=_multi_modifier(spec.tags), depth=0)
            )
        if "performers" in spec.criteria:
            base = base.with_criterion("performers", spec.criteria["performers"])
        elif spec.performers:
            base = base.with_criterion(
                "performers",
                IdCriterion(value=spec.performers, modifier=_multi_modifier(spec.performers)),
            )
    if "studios" in spec.criteria:
        base = base.with_criterion("studios", spec.criteria["studios"])
    elif spec.studios:
        base = base.with_criterion(
            "studios", IdCriterion(value=spec.studios, modifier=MODIFIER_INCLUDES, depth=0)
        )
    return replace(base, query=query.strip() or None, find_extra=find_extra)


__all__ = [
    "Shape",
    "classify",
    "coerce_id",
    "coerce_depth",
    "extract_ids",
    "normalize_criterion",
    "normalize_object_filter",
    "build_filter_spec",
    "build_canonical_filter",
]
