"""
Cache analytics derived from recorded CacheMetrics.

Pure aggregation over a list of metrics, plus a small async wrapper that
reads them from the metric store.
"""

from tempo.application.utils.clock import Clock, system_clock
from tempo.application.utils.stats import mean
from tempo.domain.cache.models import CacheAnalytics, CacheMetric, HitType, KeyAnalytics
from tempo.domain.constants import CACHE_ANALYTICS_WINDOW_HOURS, MS_PER_HOUR
from tempo.domain.ports import CacheMetricStore, CacheStore


def _hit_rate(hits: int, total: int) -> float:
    return hits / total if total else 0.0


def _avg_computation(metrics: list[CacheMetric]) -> float | None:
    times = [m.computation_time_ms for m in metrics if m.computation_time_ms is not None]
    return mean(times) if times else None


def summarize_metrics(
    metrics: list[CacheMetric],
    active_entries: int = 0,
    expired_entries: int = 0,
) -> CacheAnalytics:
    """
    Overall and per-key hit rates.

    hit_rate = hits / (hits + misses + expired); 0 when nothing was read.
    """
    by_key: dict[str, list[CacheMetric]] = {}
    for metric in metrics:
        by_key.setdefault(metric.cache_key, []).append(metric)

    key_stats = []
    for key, key_metrics in sorted(by_key.items()):
        hits = sum(1 for m in key_metrics if m.hit_type is HitType.HIT)
        key_stats.append(
            KeyAnalytics(
                cache_key=key,
                requests=len(key_metrics),
                hits=hits,
                misses=sum(1 for m in key_metrics if m.hit_type is HitType.MISS),
                expired=sum(1 for m in key_metrics if m.hit_type is HitType.EXPIRED),
                hit_rate=_hit_rate(hits, len(key_metrics)),
                avg_computation_time_ms=_avg_computation(key_metrics),
            )
        )

    hits = sum(1 for m in metrics if m.hit_type is HitType.HIT)
    return CacheAnalytics(
        total_requests=len(metrics),
        hits=hits,
        misses=sum(1 for m in metrics if m.hit_type is HitType.MISS),
        expired=sum(1 for m in metrics if m.hit_type is HitType.EXPIRED),
        hit_rate=_hit_rate(hits, len(metrics)),
        avg_computation_time_ms=_avg_computation(metrics),
        by_key=key_stats,
        active_entries=active_entries,
        expired_entries=expired_entries,
    )


class CacheAnalyticsService:
    def __init__(
        self,
        store: CacheStore,
        metrics: CacheMetricStore,
        clock: Clock = system_clock,
    ):
        self._store = store
        self._metrics = metrics
        self._clock = clock

    async def analytics(self, window_hours: int = CACHE_ANALYTICS_WINDOW_HOURS) -> CacheAnalytics:
        """Summarize cache traffic of the last `window_hours` and current entry counts."""
        now = self._clock()
        metrics = await self._metrics.list_since(now - window_hours * MS_PER_HOUR)
        active, expired = await self._store.count_entries(now)
        return summarize_metrics(metrics, active_entries=active, expired_entries=expired)
