"""
Hacker News sources for idea cards and brainstorm searches.

get_sources(topic, count) is the single entry point: it resolves the topic,
serves a slice from the TTL cache when possible and otherwise refreshes the
full, deduplicated record set from upstream before slicing.
"""

from __future__ import annotations

from typing import Callable, List, Optional

from app.core.logging import get_logger
from app.models.hn_sources import ResolvedTopic, SourceRecord
from services.hn_client import HackerNewsClient
from services.hn_normalization import normalize_items
from services.hn_topics import resolve_topic
from services.source_cache import SourceCache
from services.source_dedupe import dedupe_by_url

logger = get_logger(module="hn_sources_service")

DEFAULT_SOURCE_COUNT = 3

ClientFactory = Callable[[], HackerNewsClient]
ItemFailureHook = Callable[[str, int], None]


class HackerNewsSourceService:
    def __init__(
        self,
        *,
        cache: Optional[SourceCache] = None,
        client_factory: Optional[ClientFactory] = None,
        on_item_failures: Optional[ItemFailureHook] = None,
    ) -> None:
        self.cache = cache if cache is not None else SourceCache()
        self._client_factory = client_factory or HackerNewsClient.from_settings
        self._on_item_failures = on_item_failures
        self.item_failures_total = 0

    async def _refresh(self, resolved: ResolvedTopic) -> List[SourceRecord]:
        async with self._client_factory() as client:
            result = await client.fetch(resolved)

        if result.item_failures:
            self.item_failures_total += result.item_failures
            logger.warning(
                "hn_sources_item_failures",
                key=resolved.cache_key,
                item_failures=result.item_failures,
                items_ok=len(result.items),
            )
            if self._on_item_failures is not None:
                # observational only; a failing hook must not fail the refresh
                try:
                    self._on_item_failures(resolved.cache_key, result.item_failures)
                except Exception:
                    logger.exception("hn_item_failure_hook_failed", key=resolved.cache_key)

        records = dedupe_by_url(normalize_items(result.items))
        logger.info(
            "hn_sources_refreshed",
            key=resolved.cache_key,
            mode=resolved.mode,
            raw_items=len(result.items),
            records=len(records),
        )
        return records

    async def get_sources(self, topic: str, count: int = DEFAULT_SOURCE_COUNT) -> List[SourceRecord]:
        """
        Return at most `count` normalized, deduplicated records for topic.

        Raises:
            ValueError: count is negative
            UpstreamListError: the list or search call failed
        """
        if count < 0:
            raise ValueError("count must be >= 0")

        resolved = resolve_topic(topic)
        key = resolved.cache_key

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("hn_sources_cache_hit", key=key, cached=len(cached.records), count=count)
            return list(cached.records[:count])

        logger.info("hn_sources_cache_miss", key=key, mode=resolved.mode)
        entry = await self.cache.get_or_load(key, lambda: self._refresh(resolved))
        return list(entry.records[:count])

    def clear(self) -> None:
        self.cache.clear()
