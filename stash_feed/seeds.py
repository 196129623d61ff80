"""Random sort seeds for shuffle sessions.

Stash derives its ``random_<n>`` sort order deterministically from the seed,
so reusing one seed across offset-incremented calls keeps the order stable
while paging forward.
"""

from __future__ import annotations

import random
import re

from .models.filters import FilterSpec

SEED_PREFIX = "random_"
_SEED_RE = re.compile(r"random_\d{8}")


def generate_sort_seed(rng: random.Random | None = None) -> str:
    """Return a new seed such as ``random_04213377``."""
    value = (rng or random).randrange(100_000_000)
    return f"{SEED_PREFIX}{value:08d}"


def is_random_seed(value: object) -> bool:
    return isinstance(value, str) and _SEED_RE.fullmatch(value) is not None


class SortSeedManager:
    """Hands out the seed a request should use."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def new_seed(self) -> str:
        return generate_sort_seed(self._rng)

    def resolve_seed(self, spec: FilterSpec) -> str:
        """Reuse the session seed ``spec`` carries, else start a new session."""
        if spec.sort_seed:
            return spec.sort_seed
        return self.new_seed()


__all__ = ["SEED_PREFIX", "generate_sort_seed", "is_random_seed", "SortSeedManager"]
