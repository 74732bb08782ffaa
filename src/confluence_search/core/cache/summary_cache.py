"""Two-tier (memory + persistent) cache of AI summaries."""

import asyncio
from collections.abc import Awaitable, Callable

from loguru import logger

from confluence_search.errors import StoreError
from confluence_search.models.cache import CacheEntry, CacheKey
from confluence_search.protocols import SummaryStoreProtocol

ComputeFn = Callable[[], Awaitable[CacheEntry]]


class ContentSummaryCache:
    """Summary cache keyed by (content id, origin).

    Lookups go memory, then the persistent store, then ``compute``. Only one
    load per key is in flight at a time; concurrent callers share it. If the
    store fails, the cache keeps working from memory for the rest of the
    session.
    """

    def __init__(self, store: SummaryStoreProtocol | None) -> None:
        self._store = store
        self._memory: dict[CacheKey, CacheEntry] = {}
        self._in_flight: dict[CacheKey, asyncio.Task[CacheEntry]] = {}
        # Bumped by invalidate (per key) and clear_all (epoch).
        self._key_generations: dict[CacheKey, int] = {}
        self._epoch = 0
        self._clear_listeners: list[Callable[[], None]] = []

    @property
    def persistent(self) -> bool:
        """False once the store is unavailable (memory-only mode)."""
        return self._store is not None

    def _degrade(self, action: str, error: StoreError) -> None:
        logger.warning("Summary store {} failed, using memory only: {}", action, error)
        self._store = None

    def add_clear_listener(self, callback: Callable[[], None]) -> None:
        """Register a callback run after ``clear_all``."""
        self._clear_listeners.append(callback)

    def is_cached(self, key: CacheKey) -> bool:
        """Memory-tier status, for presentation."""
        return key in self._memory

    async def _store_get(self, key: CacheKey) -> CacheEntry | None:
        if self._store is None:
            return None
        try:
            return await self._store.get(key)
        except StoreError as e:
            self._degrade("read", e)
            return None

    async def _store_put(self, entry: CacheEntry) -> None:
        if self._store is None:
            return
        try:
            await self._store.put(entry)
        except StoreError as e:
            self._degrade("write", e)

    async def peek(self, key: CacheKey) -> CacheEntry | None:
        """Look the key up in memory and the store, without computing."""
        entry = self._memory.get(key)
        if entry is not None:
            return entry
        generation = self._generation(key)
        entry = await self._store_get(key)
        if entry is not None and self._generation(key) == generation:
            self._memory[key] = entry
        return entry

    def _generation(self, key: CacheKey) -> tuple[int, int]:
        return (self._epoch, self._key_generations.get(key, 0))

    async def _load(
        self, key: CacheKey, compute: ComputeFn, generation: tuple[int, int]
    ) -> CacheEntry:
        entry = await self._store_get(key)
        if entry is not None:
            logger.debug("Summary for {} loaded from store", key)
            if self._generation(key) == generation:
                self._memory[key] = entry
            return entry

        logger.debug("Summary for {} not cached, computing", key)
        entry = await compute()
        # A load superseded by invalidate/clear_all still answers its waiters
        # but never writes through.
        if self._generation(key) != generation:
            logger.debug("Discarding superseded summary for {}", key)
            return entry
        await self._store_put(entry)
        if self._generation(key) == generation:
            self._memory[key] = entry
        return entry

    async def get_or_create(self, key: CacheKey, compute: ComputeFn) -> CacheEntry:
        """Return the cached summary, computing it at most once per key."""
        entry = self._memory.get(key)
        if entry is not None:
            return entry

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load(key, compute, self._generation(key)))
            self._in_flight[key] = task

            def _done(finished: asyncio.Task[CacheEntry], key: CacheKey = key) -> None:
                if self._in_flight.get(key) is finished:
                    del self._in_flight[key]

            task.add_done_callback(_done)
        else:
            logger.debug("Joining in-flight summary load for {}", key)

        # Shielded so one cancelled caller does not cancel the shared load.
        return await asyncio.shield(task)

    async def invalidate(self, key: CacheKey) -> None:
        """Drop the key from both tiers.

        A load already in flight for the key is detached: its callers still get
        its result, but it is not written to either tier.
        """
        self._key_generations[key] = self._key_generations.get(key, 0) + 1
        self._memory.pop(key, None)
        self._in_flight.pop(key, None)
        if self._store is None:
            return
        try:
            await self._store.delete(key)
        except StoreError as e:
            self._degrade("delete", e)

    async def regenerate(self, key: CacheKey, compute: ComputeFn) -> CacheEntry:
        """Wait out any in-flight load, invalidate, then compute a fresh entry."""
        pending = self._in_flight.get(key)
        if pending is not None:
            logger.debug("Waiting for in-flight summary load for {} before regenerating", key)
            await asyncio.wait([pending])
        await self.invalidate(key)
        return await self.get_or_create(key, compute)

    async def clear_all(self) -> None:
        """Empty both tiers, detach in-flight loads and notify listeners."""
        self._epoch += 1
        self._memory.clear()
        self._in_flight.clear()
        if self._store is not None:
            try:
                await self._store.clear()
            except StoreError as e:
                self._degrade("clear", e)
        logger.info("Summary cache cleared")
        for callback in self._clear_listeners:
            callback()
