"""Page requests and typed fetch results."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from ..errors import StashError
from .filters import FilterSpec

Item = dict[str, Any]


@dataclass(frozen=True)
class PageRequest:
    page: int
    per_page: int
    sort: str

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError(f"page must be >= 1, got {self.page}")
        if self.per_page < 1:
            raise ValueError(f"per_page must be >= 1, got {self.per_page}")

    def first_page(self) -> PageRequest:
        return replace(self, page=1)

    def find_filter(self, query: str | None = None, **extra: Any) -> dict[str, Any]:
        """Render the find filter; ``extra`` (a saved preset) may replace the sort."""
        out: dict[str, Any] = {"sort": self.sort}
        out.update(extra)
        out.update({"page": self.page, "per_page": self.per_page})
        if query:
            out["q"] = query
        return out


@dataclass
class SampleResult:
    """Items drawn for one request plus how they were drawn.

    ``error`` is set when the backend failed; ``aborted`` when the caller
    cancelled. An ok result with no items is a confirmed empty match.
    """

    items: list[Item] = field(default_factory=list)
    total_count: int = 0
    sort_seed: str | None = None
    unfiltered_consumed: int = 0
    error: StashError | None = None
    aborted: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.aborted

    @classmethod
    def failed(cls, error: StashError, sort_seed: str | None = None) -> SampleResult:
        return cls(sort_seed=sort_seed, error=error)

    @classmethod
    def cancelled(cls, sort_seed: str | None = None) -> SampleResult:
        return cls(sort_seed=sort_seed, aborted=True)


@dataclass
class FeedPage:
    """Result of ``StashFeedEngine.fetch_sample``.

    ``next_filter`` must be passed back for the next page of the session.
    """

    items: list[Item]
    total_count: int
    next_filter: FilterSpec
    unfiltered_consumed: int = 0
    error: StashError | None = None
    aborted: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.aborted

    @property
    def empty(self) -> bool:
        return not self.items
