import random

from stash_feed import seeds
from stash_feed.models.filters import FilterSpec


def test_generate_sort_seed_format() -> None:
    rng = random.Random(7)
    for _ in range(50):
        seed = seeds.generate_sort_seed(rng)
        assert seeds.is_random_seed(seed)
        assert len(seed) == len("random_") + 8


def test_is_random_seed_rejects_other_values() -> None:
    assert not seeds.is_random_seed("random_123")
    assert not seeds.is_random_seed("created_at")
    assert not seeds.is_random_seed(None)


def test_resolve_seed_reuses_session_seed() -> None:
    mgr = seeds.SortSeedManager(random.Random(1))
    spec = FilterSpec(sort_seed="random_00001234")
    assert mgr.resolve_seed(spec) == "random_00001234"


def test_resolve_seed_does_not_mutate_spec() -> None:
    mgr = seeds.SortSeedManager(random.Random(1))
    spec = FilterSpec()
    seed = mgr.resolve_seed(spec)
    assert seeds.is_random_seed(seed)
    assert spec.sort_seed is None
    assert spec.with_seed(seed).sort_seed == seed
