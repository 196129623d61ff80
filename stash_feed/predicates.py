"""Client-side item predicates, optionally pushed down to the backend."""

from __future__ import annotations

from typing import Any, Mapping

from .models.results import Item

SQUARE_TOLERANCE = 0.05


def _primary_file(item: Mapping[str, Any]) -> Mapping[str, Any] | None:
    scene = item.get("scene") if isinstance(item.get("scene"), Mapping) else item
    for key in ("files", "visual_files"):
        files = scene.get(key)
        if isinstance(files, list) and files and isinstance(files[0], Mapping):
            return files[0]
    return None


def _number(raw: object) -> float | None:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    return float(raw)


def orientation_of(item: Mapping[str, Any]) -> str | None:
    """landscape / portrait / square from the first file, None if unknown."""
    file = _primary_file(item)
    if file is None:
        return None
    width, height = _number(file.get("width")), _number(file.get("height"))
    if not width or not height or width <= 0 or height <= 0:
        return None
    ratio = width / height
    if abs(ratio - 1.0) <= SQUARE_TOLERANCE:
        return "square"
    return "landscape" if ratio > 1.0 else "portrait"


class Predicate:
    """Item test with an optional object-filter fragment Stash understands.

    ``native`` means the backend can apply the whole test itself.
    """

    native = False

    def __call__(self, item: Item) -> bool:
        raise NotImplementedError

    def native_filter(self) -> dict[str, Any]:
        return {}


class DurationBelow(Predicate):
    native = True

    def __init__(self, max_seconds: float):
        if max_seconds <= 0:
            raise ValueError("max_seconds must be positive")
        self.max_seconds = max_seconds

    def __call__(self, item: Item) -> bool:
        file = _primary_file(item)
        duration = _number(file.get("duration")) if file else None
        return duration is not None and duration < self.max_seconds

    def native_filter(self) -> dict[str, Any]:
        return {
            "duration": {"value": int(self.max_seconds), "modifier": "LESS_THAN"},
            "file_count": {"value": 0, "modifier": "GREATER_THAN"},
        }

    def __repr__(self) -> str:
        return f"DurationBelow({self.max_seconds})"


class OrientationIn(Predicate):
    def __init__(self, orientations):
        self.orientations = frozenset(o.lower() for o in orientations)

    def __call__(self, item: Item) -> bool:
        if not self.orientations:
            return True
        found = orientation_of(item)
        return found is None or found in self.orientations

    def __repr__(self) -> str:
        return f"OrientationIn({sorted(self.orientations)})"


class AllOf(Predicate):
    def __init__(self, *parts: Predicate):
        self.parts = parts
        self.native = all(p.native for p in parts)

    def __call__(self, item: Item) -> bool:
        return all(p(item) for p in self.parts)

    def native_filter(self) -> dict[str, Any]:
        merged: dict[str, Any] = {}
        for part in self.parts:
            merged.update(part.native_filter())
        return merged

    def __repr__(self) -> str:
        return f"AllOf{self.parts!r}"


def from_spec(max_duration: int | None, orientations) -> Predicate | None:
    """Predicate for a spec's short-form options, or None when unrestricted."""
    parts: list[Predicate] = []
    if max_duration:
        parts.append(DurationBelow(max_duration))
    if orientations:
        parts.append(OrientationIn(orientations))
    if not parts:
        return None
    return parts[0] if len(parts) == 1 else AllOf(*parts)


__all__ = [
    "Predicate",
    "DurationBelow",
    "OrientationIn",
    "AllOf",
    "orientation_of",
    "from_spec",
]
