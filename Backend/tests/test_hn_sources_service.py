from __future__ import annotations

import asyncio

import httpx
import pytest

from app.core.config import settings
from app.models.hn_sources import FetchResult, SearchHit
from services.hn_client import UpstreamListError
from services.hn_sources_service import HackerNewsSourceService
from services.source_cache import CACHE_TTL_SECONDS, SourceCache

SEARCH_URL = f"{settings.HN_SEARCH_BASE_URL}/search"
ITEM_BASE = settings.HN_ITEM_BASE_URL


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _search_url(query: str) -> str:
    return str(httpx.URL(SEARCH_URL, params={"query": query, "tags": "story,comment"}))


def _hits(*pairs):
    return {"hits": [{"title": t, "url": u, "objectID": str(i)} for i, (t, u) in enumerate(pairs)]}


def _service(clock: FakeClock | None = None, **kwargs) -> HackerNewsSourceService:
    return HackerNewsSourceService(cache=SourceCache(clock=clock or FakeClock()), **kwargs)


@pytest.mark.asyncio
async def test_top_returns_first_three_in_list_order(httpx_mock):
    ids = [11, 12, 13, 14, 15]
    httpx_mock.add_response(url=f"{ITEM_BASE}/topstories.json", json=ids)
    for item_id in ids:
        httpx_mock.add_response(
            url=f"{ITEM_BASE}/item/{item_id}.json",
            json={"id": item_id, "title": f"Story {item_id}", "url": f"https://example.com/{item_id}"},
        )

    service = _service()
    records = await service.get_sources("top", 3)

    assert [r.title for r in records] == ["Story 11", "Story 12", "Story 13"]
    # full set is cached, not just the slice
    assert len(service.cache.get("top").records) == 5


@pytest.mark.asyncio
async def test_second_call_within_ttl_makes_no_upstream_requests(httpx_mock):
    httpx_mock.add_response(
        url=_search_url("startup"),
        json=_hits(("A", "https://a.example"), ("B", "https://b.example"), ("C", "https://c.example")),
    )

    service = _service()
    first = await service.get_sources("startup", 3)
    second = await service.get_sources("startup", 3)

    assert first == second
    assert [r.model_dump() for r in first] == [r.model_dump() for r in second]
    assert len(httpx_mock.get_requests()) == 1


@pytest.mark.asyncio
async def test_topic_case_shares_cache_entry(httpx_mock):
    httpx_mock.add_response(url=_search_url("Startup"), json=_hits(("A", "https://a.example")))

    service = _service()
    await service.get_sources("Startup", 3)
    await service.get_sources("  startup ", 3)

    assert len(httpx_mock.get_requests()) == 1


@pytest.mark.asyncio
async def test_expired_entry_triggers_exactly_one_refresh(httpx_mock):
    httpx_mock.add_response(url=_search_url("rust"), json=_hits(("Old", "https://old.example")))
    httpx_mock.add_response(url=_search_url("rust"), json=_hits(("New", "https://new.example")))

    clock = FakeClock()
    service = _service(clock)
    assert [r.title for r in await service.get_sources("rust")] == ["Old"]

    clock.now += CACHE_TTL_SECONDS + 1
    assert [r.title for r in await service.get_sources("rust")] == ["New"]
    assert [r.title for r in await service.get_sources("rust")] == ["New"]

    assert len(httpx_mock.get_requests()) == 2


@pytest.mark.asyncio
async def test_slice_is_prefix_of_cached_sequence(httpx_mock):
    httpx_mock.add_response(
        url=_search_url("llm"),
        json=_hits(
            ("A", "https://a.example"),
            ("A again", "https://a.example"),
            ("B", "https://b.example"),
            (None, "https://no-title.example"),
        ),
    )

    service = _service()
    records = await service.get_sources("llm", 10)
    cached = service.cache.get("llm").records

    assert [r.title for r in records] == ["A", "B"]
    assert tuple(records) == cached
    assert await service.get_sources("llm", 1) == list(cached[:1])
    assert await service.get_sources("llm", 0) == []


@pytest.mark.asyncio
async def test_negative_count_is_rejected():
    service = _service()
    with pytest.raises(ValueError):
        await service.get_sources("startup", -1)


@pytest.mark.asyncio
async def test_returned_list_is_a_copy(httpx_mock):
    httpx_mock.add_response(url=_search_url("go"), json=_hits(("A", "https://a.example")))

    service = _service()
    records = await service.get_sources("go")
    records.clear()

    assert len(await service.get_sources("go")) == 1


@pytest.mark.asyncio
async def test_partial_item_failures_still_succeed(httpx_mock):
    ids = list(range(1, 11))
    httpx_mock.add_response(url=f"{ITEM_BASE}/beststories.json", json=ids)
    for item_id in ids:
        url = f"{ITEM_BASE}/item/{item_id}.json"
        if item_id == 3:
            httpx_mock.add_response(url=url, status_code=404)
        elif item_id == 7:
            httpx_mock.add_exception(httpx.ConnectError("reset"), url=url)
        else:
            httpx_mock.add_response(
                url=url, json={"id": item_id, "title": f"Story {item_id}", "url": f"https://example.com/{item_id}"}
            )

    observed = []
    service = _service(on_item_failures=lambda key, n: observed.append((key, n)))
    records = await service.get_sources("best", 20)

    assert [r.title for r in records] == [f"Story {i}" for i in ids if i not in (3, 7)]
    assert observed == [("best", 2)]
    assert service.item_failures_total == 2


@pytest.mark.asyncio
async def test_upstream_failure_propagates_and_leaves_cache_untouched(httpx_mock):
    httpx_mock.add_response(url=_search_url("python"), json=_hits(("Py", "https://py.example")))
    httpx_mock.add_response(url=_search_url("broken"), status_code=500)

    service = _service()
    await service.get_sources("python")

    with pytest.raises(UpstreamListError, match="search"):
        await service.get_sources("broken")

    assert service.cache.get("broken") is None
    assert [r.title for r in service.cache.get("python").records] == ["Py"]


@pytest.mark.asyncio
async def test_list_failure_message_names_the_list(httpx_mock):
    httpx_mock.add_response(url=f"{ITEM_BASE}/jobstories.json", status_code=503)

    service = _service()
    with pytest.raises(UpstreamListError) as exc_info:
        await service.get_sources("job")

    assert "jobstories" in str(exc_info.value)
    assert len(service.cache) == 0


class _SlowClient:
    def __init__(self, calls: list) -> None:
        self.calls = calls

    async def __aenter__(self) -> "_SlowClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def fetch(self, resolved):
        self.calls.append(resolved.cache_key)
        await asyncio.sleep(0.01)
        return FetchResult(items=[SearchHit(title="A", url="https://a.example", object_id="1")])


@pytest.mark.asyncio
async def test_concurrent_cold_calls_share_one_refresh():
    calls: list = []
    service = _service(client_factory=lambda: _SlowClient(calls))

    first, second = await asyncio.gather(
        service.get_sources("startup", 3),
        service.get_sources("startup", 1),
    )

    assert calls == ["startup"]
    assert [r.url for r in first] == ["https://a.example"]
    assert [r.url for r in second] == ["https://a.example"]


@pytest.mark.asyncio
async def test_failing_item_failure_hook_does_not_fail_refresh(httpx_mock):
    httpx_mock.add_response(url=f"{ITEM_BASE}/topstories.json", json=[1, 2])
    httpx_mock.add_response(
        url=f"{ITEM_BASE}/item/1.json", json={"id": 1, "title": "A", "url": "https://a.example"}
    )
    httpx_mock.add_response(url=f"{ITEM_BASE}/item/2.json", status_code=500)

    def broken_hook(key: str, failures: int) -> None:
        raise RuntimeError("metrics backend down")

    service = _service(on_item_failures=broken_hook)
    records = await service.get_sources("top", 3)

    assert [r.url for r in records] == ["https://a.example"]
    assert service.item_failures_total == 1
    assert [r.url for r in service.cache.get("top").records] == ["https://a.example"]
