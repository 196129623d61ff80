import random

import pytest

from conftest import DummyCatalog, DummyGraphQLClient, make_scene
from stash_feed.cancellation import CancellationToken
from stash_feed.errors import TransportError
from stash_feed.executor import SCENES, QueryExecutor
from stash_feed.fetcher import MultiPageDeduplicatingFetcher
from stash_feed.predicates import DurationBelow, OrientationIn

SEED = "random_00000042"


def _fetcher(handler, window: int = 24, page_count: int = 3) -> tuple[MultiPageDeduplicatingFetcher, DummyGraphQLClient]:
    client = DummyGraphQLClient(handler)
    fetcher = MultiPageDeduplicatingFetcher(
        QueryExecutor(client, SCENES), window=window, page_count=page_count, rng=random.Random(5)
    )
    return fetcher, client


def _mixed_catalog(n: int) -> list[dict]:
    # even ids are short, odd ids are long
    return [make_scene(i, duration=30 if i % 2 == 0 else 600) for i in range(n)]


@pytest.mark.asyncio
async def test_sample_filtered_pushes_native_fragment_and_seed() -> None:
    fetcher, client = _fetcher(DummyCatalog(_mixed_catalog(10)))
    await fetcher.sample_filtered(DurationBelow(120), 5, 0, SEED)
    count_vars = client.calls[0][1]
    page_vars = client.calls[1][1]
    assert count_vars["scene_filter"]["duration"] == {"value": 120, "modifier": "LESS_THAN"}
    assert page_vars["filter"]["sort"] == SEED
    assert page_vars["filter"]["per_page"] == 24
    assert page_vars["scene_filter"]["file_count"]["modifier"] == "GREATER_THAN"


@pytest.mark.asyncio
async def test_sample_filtered_counts_inspected_items() -> None:
    fetcher, _ = _fetcher(DummyCatalog(_mixed_catalog(30)))
    result = await fetcher.sample_filtered(DurationBelow(120), 3, 0, SEED)
    assert [i["id"] for i in result.items] == ["0", "2", "4"]
    # 0..4 inspected, 5 never looked at
    assert result.unfiltered_consumed == 5
    assert result.total_count == 30


@pytest.mark.asyncio
async def test_consecutive_offsets_return_disjoint_items() -> None:
    catalog = _mixed_catalog(60)
    fetcher, _ = _fetcher(DummyCatalog(catalog))
    seen: list[str] = []
    offset = 0
    for _ in range(50):
        result = await fetcher.sample_filtered(DurationBelow(120), 4, offset, SEED)
        assert result.ok
        if not result.items and result.unfiltered_consumed == 0:
            break
        seen.extend(i["id"] for i in result.items)
        offset += result.unfiltered_consumed
    assert len(seen) == len(set(seen))
    assert set(seen) == {s["id"] for s in catalog if float(s["files"][0]["duration"]) < 120}


@pytest.mark.asyncio
async def test_sample_filtered_zero_count() -> None:
    fetcher, client = _fetcher(DummyCatalog([]))
    result = await fetcher.sample_filtered(DurationBelow(120), 5, 0, SEED)
    assert result.ok
    assert result.items == []
    assert result.total_count == 0
    assert result.unfiltered_consumed == 0
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_sample_filtered_count_failure(caplog) -> None:
    fetcher, _ = _fetcher(lambda _d, _v: TransportError("down"))
    result = await fetcher.sample_filtered(DurationBelow(120), 5, 0, SEED)
    assert isinstance(result.error, TransportError)
    assert result.sort_seed == SEED
    assert len([r for r in caplog.records if "sample_filtered failed" in r.getMessage()]) == 1


@pytest.mark.asyncio
async def test_sample_filtered_cancelled_makes_no_call() -> None:
    fetcher, client = _fetcher(DummyCatalog(_mixed_catalog(10)))
    token = CancellationToken()
    token.cancel()
    result = await fetcher.sample_filtered(DurationBelow(120), 5, 0, SEED, token)
    assert result.aborted
    assert client.calls == []


def _scene(ident: str) -> dict:
    return {**make_scene(0), "id": ident}


def _overlapping_pages(_doc, variables):
    page = variables["filter"]["page"]
    pages = {
        1: [_scene("scene-41"), _scene("scene-42")],
        2: [_scene("scene-42"), _scene("scene-43")],
    }
    return {"findScenes": {"count": 48, "scenes": pages.get(page, [])}}


@pytest.mark.asyncio
async def test_sample_pages_dedupes_by_id() -> None:
    fetcher, _ = _fetcher(_overlapping_pages)
    result = await fetcher.sample_pages(OrientationIn(["landscape"]), 10, SEED, pages=[1, 2])
    ids = [i["id"] for i in result.items]
    assert sorted(ids) == ["scene-41", "scene-42", "scene-43"]
    assert ids.count("scene-42") == 1
    assert result.unfiltered_consumed == 3


@pytest.mark.asyncio
async def test_sample_pages_random_pages_are_distinct() -> None:
    fetcher, client = _fetcher(DummyCatalog(_mixed_catalog(240)), window=24, page_count=3)
    result = await fetcher.sample_pages(OrientationIn(["landscape"]), 10, SEED)
    pages = [v["filter"]["page"] for _, v in client.calls[1:]]
    assert len(pages) == 3
    assert len(set(pages)) == 3
    assert all(1 <= p <= 10 for p in pages)
    assert len(result.items) == 10


@pytest.mark.asyncio
async def test_sample_pages_keeps_partial_results(caplog) -> None:
    def handler(doc, variables):
        if variables["filter"]["page"] == 2:
            return TransportError("page 2 down")
        return _overlapping_pages(doc, variables)

    fetcher, _ = _fetcher(handler)
    result = await fetcher.sample_pages(OrientationIn(["landscape"]), 10, SEED, pages=[1, 2])
    assert result.ok
    assert sorted(i["id"] for i in result.items) == ["scene-41", "scene-42"]
    assert len([r for r in caplog.records if "page 2 down" in r.getMessage()]) == 1


@pytest.mark.asyncio
async def test_sample_pages_all_failed_is_error() -> None:
    def handler(_doc, variables):
        if variables["filter"]["per_page"] == 1:
            return {"findScenes": {"count": 48}}
        return TransportError("down")

    fetcher, _ = _fetcher(handler)
    result = await fetcher.sample_pages(OrientationIn(["landscape"]), 10, SEED, pages=[1, 2])
    assert isinstance(result.error, TransportError)
    assert result.items == []


@pytest.mark.asyncio
async def test_sample_filtered_window_grows_past_limit() -> None:
    fetcher, client = _fetcher(DummyCatalog([make_scene(i) for i in range(200)]))
    result = await fetcher.sample_filtered(DurationBelow(120), 40, 0, SEED)
    assert len(result.items) == 40
    assert result.unfiltered_consumed == 40
    assert client.calls[1][1]["filter"]["per_page"] == 64

    # resumes right after the first call, rest of the same 64-item window
    following = await fetcher.sample_filtered(DurationBelow(120), 40, 40, SEED)
    assert [i["id"] for i in following.items] == [str(i) for i in range(40, 64)]
    assert following.unfiltered_consumed == 24


@pytest.mark.asyncio
async def test_sample_filtered_offset_past_end_is_empty() -> None:
    fetcher, client = _fetcher(DummyCatalog(_mixed_catalog(30)))
    result = await fetcher.sample_filtered(DurationBelow(120), 5, 30, SEED)
    assert result.ok
    assert result.items == []
    assert result.total_count == 30
    assert result.unfiltered_consumed == 0
    # only the count query ran
    assert len(client.calls) == 1
