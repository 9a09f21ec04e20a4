"""
Hacker News upstream client.

Two upstreams are reconciled here:

- the search index (hn.algolia.com), one call returning pre-filtered hits;
- the item graph (hacker-news.firebaseio.com), a list call returning item ids
  followed by one call per id.

List and search calls are fatal on failure (UpstreamListError). Individual item
calls are not: a failed item becomes a placeholder that is dropped and counted.
"""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional

import httpx

from app.core.config import Settings, get_settings
from app.core.logging import get_logger
from app.models.hn_sources import (
    FetchResult,
    GraphItem,
    ListCategory,
    ResolvedTopic,
    SearchHit,
)
from services.hn_topics import list_endpoint_for

logger = get_logger(module="hn_client")

# Upstream lists can be arbitrarily long; bound the per-item fan-out.
MAX_LIST_ITEMS = 500
SEARCH_TAGS = "story,comment"


class UpstreamListError(Exception):
    """
    A list or search call failed (bad status, transport error, malformed body).
    Fatal for the refresh that issued it; the cache is left untouched.
    """

    def __init__(self, call: str, message: str, *, status_code: Optional[int] = None):
        super().__init__(f"Hacker News {call} call failed: {message}")
        self.call = call
        self.status_code = status_code


def _is_id_list(payload: Any) -> bool:
    if not isinstance(payload, list):
        return False
    return all(isinstance(v, int) and not isinstance(v, bool) for v in payload)


class HackerNewsClient:
    """
    Async context manager around one httpx.AsyncClient.

        async with HackerNewsClient.from_settings() as client:
            result = await client.fetch(resolve_topic("top"))
    """

    def __init__(
        self,
        *,
        search_base_url: str,
        item_base_url: str,
        user_agent: str,
        timeout_s: float = 10.0,
        max_list_items: int = MAX_LIST_ITEMS,
    ) -> None:
        self.search_base_url = search_base_url.rstrip("/")
        self.item_base_url = item_base_url.rstrip("/")
        self.user_agent = user_agent
        self.timeout_s = timeout_s
        self.max_list_items = max(0, max_list_items)
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "HackerNewsClient":
        settings = settings or get_settings()
        return cls(
            search_base_url=settings.HN_SEARCH_BASE_URL,
            item_base_url=settings.HN_ITEM_BASE_URL,
            user_agent=settings.HN_USER_AGENT,
            timeout_s=settings.HN_HTTP_TIMEOUT_S,
        )

    async def __aenter__(self) -> "HackerNewsClient":
        # Pool sized to the fan-out cap so item calls are not throttled by the client.
        pool = max(1, self.max_list_items)
        self._client = httpx.AsyncClient(
            timeout=self.timeout_s,
            headers={"User-Agent": self.user_agent},
            follow_redirects=True,
            limits=httpx.Limits(max_connections=pool, max_keepalive_connections=min(pool, 20)),
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(f"{self.__class__.__name__} HTTP client not initialized")
        return self._client

    async def fetch(self, resolved: ResolvedTopic) -> FetchResult:
        if resolved.mode == "list":
            return await self.fetch_list(resolved.list_category)
        hits = await self.search(resolved.query if resolved.query is not None else resolved.cache_key)
        return FetchResult(items=list(hits))

    # -------- search index ---------------------------------------------------

    async def search(self, query: str) -> List[SearchHit]:
        client = self._require_client()
        url = f"{self.search_base_url}/search"
        try:
            response = await client.get(url, params={"query": query, "tags": SEARCH_TAGS})
        except httpx.HTTPError as exc:
            logger.warning("hn_search_fetch_failed", query=query, error=str(exc))
            raise UpstreamListError("search", str(exc)) from exc

        if not response.is_success:
            logger.warning("hn_search_bad_status", query=query, status_code=response.status_code)
            raise UpstreamListError(
                "search",
                f"{response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamListError("search", "response is not valid JSON") from exc

        hits = payload.get("hits") if isinstance(payload, dict) else None
        if not isinstance(hits, list):
            raise UpstreamListError("search", "unexpected response shape (hits is not a list)")

        items = [SearchHit.model_validate(hit) for hit in hits if isinstance(hit, dict)]
        logger.debug("hn_search_fetched", query=query, hits=len(items))
        return items

    # -------- item graph -----------------------------------------------------

    async def fetch_list_ids(self, category: ListCategory | str) -> List[int]:
        endpoint = list_endpoint_for(category)
        client = self._require_client()
        url = f"{self.item_base_url}/{endpoint}.json"
        try:
            response = await client.get(url)
        except httpx.HTTPError as exc:
            logger.warning("hn_list_fetch_failed", endpoint=endpoint, error=str(exc))
            raise UpstreamListError(endpoint, str(exc)) from exc

        if not response.is_success:
            logger.warning("hn_list_bad_status", endpoint=endpoint, status_code=response.status_code)
            raise UpstreamListError(
                endpoint,
                f"{response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamListError(endpoint, "response is not valid JSON") from exc

        if not _is_id_list(payload):
            raise UpstreamListError(endpoint, "unexpected response shape (expected a list of item ids)")
        return payload[: self.max_list_items]

    async def fetch_item(self, item_id: int) -> Optional[GraphItem]:
        """Fetch one item; any failure yields None instead of raising."""
        client = self._require_client()
        url = f"{self.item_base_url}/item/{item_id}.json"
        try:
            response = await client.get(url)
            if not response.is_success:
                logger.debug("hn_item_bad_status", item_id=item_id, status_code=response.status_code)
                return None
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("hn_item_fetch_failed", item_id=item_id, error=str(exc))
            return None

        if not isinstance(payload, dict):
            # deleted / unknown ids come back as JSON null
            return None
        return GraphItem.model_validate(payload)

    async def fetch_list(self, category: ListCategory | str) -> FetchResult:
        ids = await self.fetch_list_ids(category)
        results = await asyncio.gather(*(self.fetch_item(item_id) for item_id in ids))
        items = [item for item in results if item is not None]
        failures = len(results) - len(items)
        logger.debug(
            "hn_list_fetched",
            category=str(getattr(category, "value", category)),
            ids=len(ids),
            items=len(items),
            item_failures=failures,
        )
        return FetchResult(items=items, item_failures=failures)
