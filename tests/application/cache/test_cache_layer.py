from unittest.mock import AsyncMock

import pytest

from helpers import NOW, ManualClock
from tempo.application.cache.analytics import CacheAnalyticsService, summarize_metrics
from tempo.application.cache.service import CacheLayer
from tempo.application.config import AppConfig
from tempo.domain.cache.models import (
    INVALIDATION_TABLE,
    CacheEvent,
    CacheMetric,
    CacheName,
    HitType,
)
from tempo.domain.constants import MS_PER_DAY, MS_PER_MINUTE
from tempo.domain.exceptions import ValidationError
from tempo.infrastructure.persistence.memory import (
    InMemoryCacheMetricStore,
    InMemoryCacheStore,
)

USER = "user_1"


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def store():
    return InMemoryCacheStore()


@pytest.fixture
def metrics():
    return InMemoryCacheMetricStore()


@pytest.fixture
def cache(store, metrics, clock):
    return CacheLayer(store, metrics, config=AppConfig(cleanup_batch_size=2), clock=clock)


async def _hit_types(metrics):
    return [m.hit_type for m in await metrics.list_since(0)]


@pytest.mark.asyncio
async def test_set_then_get_round_trip(cache, metrics):
    value = {"retention": 0.82, "decks": ["a", "b"]}
    entry = await cache.set(USER, CacheName.USER_STATS, value)

    assert entry.expires_at == NOW + 5 * MS_PER_MINUTE
    assert await cache.get(USER, CacheName.USER_STATS) == value
    assert await _hit_types(metrics) == [HitType.HIT]


@pytest.mark.asyncio
async def test_entry_expires_after_ttl(cache, metrics, clock):
    await cache.set(USER, CacheName.USER_STATS, {"x": 1}, ttl_ms=1000)

    clock.advance(1000)

    assert await cache.get(USER, CacheName.USER_STATS) is None
    assert await _hit_types(metrics) == [HitType.EXPIRED]


@pytest.mark.asyncio
async def test_missing_entry_is_miss(cache, metrics):
    assert await cache.get(USER, CacheName.DASHBOARD_DATA) is None
    assert await _hit_types(metrics) == [HitType.MISS]


@pytest.mark.asyncio
async def test_outdated_version_is_not_served(store, metrics, clock):
    old = CacheLayer(store, metrics, clock=clock, version=1)
    await old.set(USER, CacheName.USER_STATS, {"x": 1})

    new = CacheLayer(store, metrics, clock=clock, version=2)

    assert await new.get(USER, CacheName.USER_STATS) is None
    assert await _hit_types(metrics) == [HitType.EXPIRED]


@pytest.mark.asyncio
async def test_non_positive_ttl_rejected(cache):
    with pytest.raises(ValidationError):
        await cache.set(USER, CacheName.USER_STATS, {}, ttl_ms=0)


@pytest.mark.asyncio
async def test_get_or_compute_computes_once(cache, metrics):
    compute = AsyncMock(return_value={"velocity": 1.2})

    first = await cache.get_or_compute(USER, CacheName.LEARNING_PATTERN, compute)
    second = await cache.get_or_compute(USER, CacheName.LEARNING_PATTERN, compute)

    assert first == second == {"velocity": 1.2}
    compute.assert_awaited_once()

    recorded = await metrics.list_since(0)
    assert [m.hit_type for m in recorded] == [HitType.MISS, HitType.HIT]
    assert recorded[0].ttl_ms == 5 * MS_PER_MINUTE
    assert recorded[0].computation_time_ms == 0
    assert recorded[0].cache_key == "learning_pattern_user_1"
    assert recorded[1].ttl_ms is None


@pytest.mark.asyncio
async def test_get_or_compute_does_not_cache_none(cache, metrics):
    compute = AsyncMock(return_value=None)

    assert await cache.get_or_compute(USER, CacheName.LEARNING_PATTERN, compute) is None
    assert await cache.get_or_compute(USER, CacheName.LEARNING_PATTERN, compute) is None

    assert compute.await_count == 2
    assert await _hit_types(metrics) == [HitType.MISS, HitType.MISS]


@pytest.mark.asyncio
async def test_compute_errors_propagate(cache, store):
    compute = AsyncMock(side_effect=RuntimeError("boom"))

    with pytest.raises(RuntimeError):
        await cache.get_or_compute(USER, CacheName.USER_STATS, compute)
    assert await store.get(USER, CacheName.USER_STATS) is None


@pytest.mark.asyncio
async def test_hit_rate_counts_expired_reads(cache, store, metrics, clock):
    compute = AsyncMock(return_value=[1, 2, 3])

    await cache.get_or_compute(USER, CacheName.USER_STATS, compute)  # miss
    for _ in range(3):
        await cache.get_or_compute(USER, CacheName.USER_STATS, compute)  # hit
    clock.advance(5 * MS_PER_MINUTE)
    await cache.get_or_compute(USER, CacheName.USER_STATS, compute)  # expired

    report = await CacheAnalyticsService(store, metrics, clock=clock).analytics()

    assert (report.hits, report.misses, report.expired) == (3, 1, 1)
    assert report.total_requests == 5
    assert report.hit_rate == pytest.approx(0.6)
    assert report.active_entries == 1
    assert report.by_key[0].cache_key == "user_stats_user_1"


@pytest.mark.parametrize("event", list(CacheEvent))
@pytest.mark.asyncio
async def test_event_invalidates_exactly_its_table(cache, store, event):
    for name in CacheName:
        await cache.set(USER, name, {"name": name.value})
        await cache.set("someone_else", name, {"name": name.value})

    removed = await cache.on_event(USER, event)

    assert removed == len(INVALIDATION_TABLE[event])
    for name in CacheName:
        survived = await store.get(USER, name) is not None
        assert survived is (name not in INVALIDATION_TABLE[event])
        assert await store.get("someone_else", name) is not None


def test_invalidation_table_covers_every_event():
    assert set(INVALIDATION_TABLE) == set(CacheEvent)
    assert CacheName.USER_STATS not in INVALIDATION_TABLE[CacheEvent.CARD_REVIEWED]
    for names in INVALIDATION_TABLE.values():
        assert CacheName.LEARNING_PATTERN in names


@pytest.mark.asyncio
async def test_invalidate_user(cache, store):
    await cache.set(USER, CacheName.USER_STATS, 1)
    await cache.set(USER, CacheName.DASHBOARD_DATA, 2)
    await cache.set("other", CacheName.USER_STATS, 3)

    assert await cache.invalidate(USER) == 2
    assert await cache.invalidate("other", CacheName.USER_STATS) == 1
    assert await cache.invalidate("other", CacheName.USER_STATS) == 0


@pytest.mark.asyncio
async def test_cleanup_expired_is_batched(cache, store, clock):
    for user in ("a", "b", "c"):
        await cache.set(user, CacheName.USER_STATS, 1, ttl_ms=1000)
    await cache.set("d", CacheName.USER_STATS, 1, ttl_ms=MS_PER_DAY)

    clock.advance(1000)

    assert await cache.cleanup_expired() == 2
    assert await cache.cleanup_expired() == 1
    assert await cache.cleanup_expired() == 0
    assert await store.count_entries(clock()) == (1, 0)


@pytest.mark.asyncio
async def test_cleanup_metrics_respects_retention(cache, metrics):
    for age_days in (10, 9, 8, 1):
        await metrics.record(
            CacheMetric(cache_key="k", hit_type=HitType.HIT, timestamp=NOW - age_days * MS_PER_DAY)
        )

    assert await cache.cleanup_metrics() == 2
    assert await cache.cleanup_metrics() == 1
    remaining = await metrics.list_since(0)
    assert [m.timestamp for m in remaining] == [NOW - MS_PER_DAY]


def test_summarize_metrics_empty():
    report = summarize_metrics([])
    assert report.hit_rate == 0.0
    assert report.avg_computation_time_ms is None
    assert report.by_key == []
    assert report.total_entries == 0
