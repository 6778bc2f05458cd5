"""
Ranking Cache

Short-lived cache of computed rankings, keyed by
"{materia_id}:{teacher_id or 'auto'}" for materias and by
"{materia_id}:{teacher_id or 'auto'}:notebook:{notebook_id}" for notebooks,
so invalidating a materia also drops its notebook rankings.

Snapshots hold the ordered entries without per-viewer flags; the ranking
service re-applies is_current_user on every read.

Backends:
- InMemoryRankingCache: per process, the default
- RedisRankingCache: shared between workers through redis.asyncio

Concurrent misses for the same key may compute the ranking twice; the last
write wins.
"""

import logging
import time
from collections.abc import Callable
from typing import Optional, Protocol

from simonkey.config import settings
from simonkey.db.redis import RedisCache
from simonkey.models.progress import RankingEntry

logger = logging.getLogger(__name__)


def ranking_cache_key(
    materia_id: str, teacher_id: Optional[str] = None, notebook_id: Optional[str] = None
) -> str:
    key = f"{materia_id}:{teacher_id or 'auto'}"
    if notebook_id:
        key += f":notebook:{notebook_id}"
    return key


class RankingCache(Protocol):
    """Storage for ranking snapshots."""

    async def get(self, key: str) -> Optional[list[RankingEntry]]:
        ...

    async def set(self, key: str, entries: list[RankingEntry]) -> None:
        ...

    async def invalidate_materia(self, materia_id: str) -> None:
        ...


class InMemoryRankingCache:
    """Process-local ranking cache with a fixed TTL."""

    def __init__(
        self,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds or settings.RANKING_CACHE_TTL_SECONDS
        self.clock = clock
        self._entries: dict[str, tuple[float, list[RankingEntry]]] = {}

    async def get(self, key: str) -> Optional[list[RankingEntry]]:
        cached = self._entries.get(key)
        if cached is None:
            return None
        stored_at, entries = cached
        if self.clock() - stored_at >= self.ttl_seconds:
            self._entries.pop(key, None)
            return None
        return [entry.model_copy() for entry in entries]

    async def set(self, key: str, entries: list[RankingEntry]) -> None:
        now = self.clock()
        self._prune(now)
        self._entries[key] = (now, [entry.model_copy() for entry in entries])

    def _prune(self, now: float) -> None:
        """Drop expired snapshots, including keys that are never read again."""
        expired = [
            key
            for key, (stored_at, _) in self._entries.items()
            if now - stored_at >= self.ttl_seconds
        ]
        for key in expired:
            del self._entries[key]

    async def invalidate_materia(self, materia_id: str) -> None:
        prefix = f"{materia_id}:"
        for key in [key for key in self._entries if key.startswith(prefix)]:
            del self._entries[key]

    def clear(self) -> None:
        self._entries.clear()


class RedisRankingCache:
    """Redis-backed ranking cache shared between API workers."""

    def __init__(self, ttl_seconds: Optional[int] = None, cache: Optional[RedisCache] = None):
        self.ttl_seconds = ttl_seconds or settings.RANKING_CACHE_TTL_SECONDS
        self.cache = cache or RedisCache(prefix="ranking")

    async def get(self, key: str) -> Optional[list[RankingEntry]]:
        data = await self.cache.get(key)
        if data is None:
            return None
        return [RankingEntry.model_validate(item) for item in data]

    async def set(self, key: str, entries: list[RankingEntry]) -> None:
        await self.cache.set(
            key,
            [entry.model_dump(mode="json") for entry in entries],
            ttl=self.ttl_seconds,
        )

    async def invalidate_materia(self, materia_id: str) -> None:
        await self.cache.clear_pattern(f"{materia_id}:*")


def create_ranking_cache(backend: Optional[str] = None) -> RankingCache:
    """Build the ranking cache configured by settings.RANKING_CACHE_BACKEND."""
    backend = (backend or settings.RANKING_CACHE_BACKEND).lower()
    if backend == "redis":
        logger.info("Using Redis ranking cache")
        return RedisRankingCache()
    if backend != "memory":
        logger.warning(f"Unknown ranking cache backend {backend!r}, using memory")
    return InMemoryRankingCache()
