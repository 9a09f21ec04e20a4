from __future__ import annotations

import asyncio
import functools
import time
from typing import Awaitable, Callable, Dict, Optional, Sequence

from app.core.logging import get_logger
from app.models.hn_sources import CacheEntry, SourceRecord

logger = get_logger(module="source_cache")

CACHE_TTL_SECONDS = 24 * 60 * 60

Loader = Callable[[], Awaitable[Sequence[SourceRecord]]]


class SourceCache:
    """
    In-process TTL cache of normalized source records, one entry per topic key.

    Entries expire lazily on access; there is no background sweep. Entries are
    replaced wholesale on refresh. Concurrent misses for the same key share one
    in-flight load.

    Not thread-safe: all access is expected from a single event loop.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._inflight: Dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            self._entries.pop(key, None)
            logger.debug("source_cache_expired", key=key)
            return None
        return entry

    def set(self, key: str, records: Sequence[SourceRecord]) -> CacheEntry:
        entry = CacheEntry(
            key=key,
            expires_at=self._clock() + self.ttl_seconds,
            records=tuple(records),
        )
        self._entries[key] = entry
        return entry

    def clear(self) -> None:
        self._entries.clear()

    def is_loading(self, key: str) -> bool:
        return key in self._inflight

    @staticmethod
    def _log_load_failure(key: str, task: asyncio.Task) -> None:
        # Retrieves the exception even when every waiter was cancelled.
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("source_cache_load_failed", key=key, error=str(exc))

    async def _load(self, key: str, loader: Loader) -> CacheEntry:
        try:
            records = await loader()
            return self.set(key, records)
        finally:
            self._inflight.pop(key, None)

    async def get_or_load(self, key: str, loader: Loader) -> CacheEntry:
        """
        Return the valid entry for key, or run loader once and store its result.

        Callers arriving while a load for the same key is running await that
        load. A loader exception reaches every waiter and nothing is stored.
        """
        entry = self.get(key)
        if entry is not None:
            return entry

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load(key, loader))
            task.add_done_callback(functools.partial(self._log_load_failure, key))
            self._inflight[key] = task
        else:
            logger.debug("source_cache_join_inflight", key=key)

        # A cancelled caller must not cancel the refresh other callers wait on.
        return await asyncio.shield(task)
