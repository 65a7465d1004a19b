"""
TTL cache for per-user aggregates.

Values are stored as JSON strings and decoded on read, so callers must pass
JSON-serializable data (pydantic models go through `model_dump(mode="json")`).
Every read is recorded as a CacheMetric for monitoring.
"""

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from tempo.application.config import AppConfig
from tempo.application.utils.clock import Clock, system_clock
from tempo.domain.cache.models import (
    INVALIDATION_TABLE,
    CacheEntry,
    CacheEvent,
    CacheMetric,
    CacheName,
    HitType,
)
from tempo.domain.constants import CACHE_VERSION, MS_PER_DAY
from tempo.domain.exceptions import ValidationError
from tempo.domain.ports import CacheMetricStore, CacheStore

logger = logging.getLogger(__name__)


class CacheLayer:
    """
    Read-through cache over a CacheStore.

    An entry is served only while `expires_at > now` and its version matches
    CACHE_VERSION; anything else is reported as absent.
    """

    def __init__(
        self,
        store: CacheStore,
        metrics: CacheMetricStore,
        config: AppConfig | None = None,
        clock: Clock = system_clock,
        version: int = CACHE_VERSION,
    ):
        self._store = store
        self._metrics = metrics
        self._config = config or AppConfig()
        self._clock = clock
        self._version = version

    async def _lookup(self, user_id: str, name: CacheName) -> tuple[HitType, CacheEntry | None]:
        entry = await self._store.get(user_id, name)
        if entry is None:
            return HitType.MISS, None
        if not entry.is_valid(self._clock(), self._version):
            return HitType.EXPIRED, None
        return HitType.HIT, entry

    async def _record(
        self,
        user_id: str,
        name: CacheName,
        hit_type: HitType,
        computation_time_ms: int | None = None,
        ttl_ms: int | None = None,
    ) -> None:
        await self._metrics.record(
            CacheMetric(
                cache_key=name.key(user_id),
                hit_type=hit_type,
                timestamp=self._clock(),
                user_id=user_id,
                computation_time_ms=computation_time_ms,
                ttl_ms=ttl_ms,
            )
        )

    async def get(self, user_id: str, name: CacheName) -> Any | None:
        """
        Return the cached value, or None if absent, expired or outdated.
        """
        hit_type, entry = await self._lookup(user_id, name)
        await self._record(user_id, name, hit_type)
        if entry is None:
            logger.debug(f"Cache {hit_type.value} for {name.key(user_id)}")
            return None
        return json.loads(entry.payload)

    async def set(
        self,
        user_id: str,
        name: CacheName,
        value: Any,
        ttl_ms: int | None = None,
    ) -> CacheEntry:
        """
        Store a value, replacing any existing entry for the same key.

        Args:
            ttl_ms: Lifetime in ms; defaults to the configured TTL for `name`.
        """
        ttl = ttl_ms if ttl_ms is not None else self._config.ttl_for(name)
        if ttl <= 0:
            raise ValidationError(f"TTL must be positive, got {ttl}")

        now = self._clock()
        entry = CacheEntry(
            user_id=user_id,
            name=name,
            payload=json.dumps(value),
            computed_at=now,
            expires_at=now + ttl,
            version=self._version,
        )
        await self._store.put(entry)
        return entry

    async def get_or_compute(
        self,
        user_id: str,
        name: CacheName,
        compute: Callable[[], Awaitable[Any]],
        ttl_ms: int | None = None,
    ) -> Any:
        """
        Serve from cache, or await `compute()` and cache its result.

        One metric is recorded per call; a recomputation records its duration
        and the TTL it was stored with. A None result is returned but not cached.
        """
        hit_type, entry = await self._lookup(user_id, name)
        if entry is not None:
            await self._record(user_id, name, hit_type)
            return json.loads(entry.payload)

        started = self._clock()
        value = await compute()
        elapsed = self._clock() - started

        ttl = None
        if value is not None:
            stored = await self.set(user_id, name, value, ttl_ms=ttl_ms)
            ttl = stored.expires_at - stored.computed_at

        await self._record(user_id, name, hit_type, computation_time_ms=elapsed, ttl_ms=ttl)
        return value

    async def invalidate(self, user_id: str, name: CacheName | None = None) -> int:
        """Drop one entry, or every entry of the user when `name` is None."""
        if name is None:
            removed = await self._store.delete_user(user_id)
        else:
            removed = int(await self._store.delete(user_id, name))
        logger.debug(f"Invalidated {removed} cache entries for {user_id}")
        return removed

    async def on_event(self, user_id: str, event: CacheEvent) -> int:
        """Drop every cache entry that `event` makes stale."""
        removed = 0
        for name in sorted(INVALIDATION_TABLE[event], key=lambda n: n.value):
            removed += int(await self._store.delete(user_id, name))
        logger.debug(f"{event.value} for {user_id} invalidated {removed} entries")
        return removed

    async def cleanup_expired(self, now: int | None = None) -> int:
        """Delete one bounded batch of entries with expires_at <= now."""
        now = self._clock() if now is None else now
        deleted = await self._store.delete_expired(now, self._config.cleanup_batch_size)
        if deleted:
            logger.info(f"Cleaned up {deleted} expired cache entries")
        return deleted

    async def cleanup_metrics(self, now: int | None = None) -> int:
        """Delete one bounded batch of metrics older than the retention period."""
        now = self._clock() if now is None else now
        cutoff = now - self._config.metrics_retention_days * MS_PER_DAY
        deleted = await self._metrics.delete_before(cutoff, self._config.cleanup_batch_size)
        if deleted:
            logger.info(f"Cleaned up {deleted} cache metrics")
        return deleted
