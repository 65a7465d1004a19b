"""
Domain models for the statistics cache.

The invalidation table below is the single place that decides which cached
aggregates a data-mutating event makes stale.
"""

from dataclasses import dataclass
from enum import Enum

from tempo.domain.constants import MS_PER_MINUTE


class HitType(str, Enum):
    HIT = "hit"
    MISS = "miss"
    EXPIRED = "expired"


class CacheName(str, Enum):
    """Logical names of the per-user cached aggregates."""

    USER_STATS = "user_stats"
    RETENTION_RATE_7D = "retention_rate_7d"
    RETENTION_RATE_30D = "retention_rate_30d"
    DECK_PERFORMANCE = "deck_performance"
    CARD_DISTRIBUTION = "card_distribution"
    SPACED_REP_INSIGHTS = "spaced_rep_insights"
    DASHBOARD_DATA = "dashboard_data"
    LEARNING_PATTERN = "learning_pattern"
    CONCEPT_MASTERY = "concept_mastery"

    def key(self, user_id: str) -> str:
        return f"{self.value}_{user_id}"


class CacheEvent(str, Enum):
    """Data-mutating events that make cached aggregates stale."""

    CARD_REVIEWED = "card_reviewed"
    STUDY_SESSION_COMPLETED = "study_session_completed"
    DECK_CREATED = "deck_created"
    DECK_DELETED = "deck_deleted"
    CARD_CREATED = "card_created"
    CARD_DELETED = "card_deleted"


_DECK_CHANGE = frozenset(
    {
        CacheName.USER_STATS,
        CacheName.DECK_PERFORMANCE,
        CacheName.DASHBOARD_DATA,
        CacheName.CARD_DISTRIBUTION,
        CacheName.LEARNING_PATTERN,
        CacheName.CONCEPT_MASTERY,
    }
)

_CARD_CHANGE = frozenset(
    {
        CacheName.USER_STATS,
        CacheName.CARD_DISTRIBUTION,
        CacheName.SPACED_REP_INSIGHTS,
        CacheName.DASHBOARD_DATA,
        CacheName.LEARNING_PATTERN,
        CacheName.CONCEPT_MASTERY,
    }
)

INVALIDATION_TABLE: dict[CacheEvent, frozenset[CacheName]] = {
    CacheEvent.CARD_REVIEWED: frozenset(
        {
            CacheName.RETENTION_RATE_7D,
            CacheName.RETENTION_RATE_30D,
            CacheName.DECK_PERFORMANCE,
            CacheName.CARD_DISTRIBUTION,
            CacheName.SPACED_REP_INSIGHTS,
            CacheName.DASHBOARD_DATA,
            CacheName.LEARNING_PATTERN,
            CacheName.CONCEPT_MASTERY,
        }
    ),
    CacheEvent.STUDY_SESSION_COMPLETED: frozenset(
        {
            CacheName.USER_STATS,
            CacheName.CARD_DISTRIBUTION,
            CacheName.SPACED_REP_INSIGHTS,
            CacheName.DASHBOARD_DATA,
            CacheName.LEARNING_PATTERN,
        }
    ),
    CacheEvent.DECK_CREATED: _DECK_CHANGE,
    CacheEvent.DECK_DELETED: _DECK_CHANGE,
    CacheEvent.CARD_CREATED: _CARD_CHANGE,
    CacheEvent.CARD_DELETED: _CARD_CHANGE,
}

DEFAULT_TTL_MS: dict[CacheName, int] = {
    CacheName.USER_STATS: 5 * MS_PER_MINUTE,
    CacheName.RETENTION_RATE_7D: 15 * MS_PER_MINUTE,
    CacheName.RETENTION_RATE_30D: 15 * MS_PER_MINUTE,
    CacheName.DECK_PERFORMANCE: 10 * MS_PER_MINUTE,
    CacheName.CARD_DISTRIBUTION: 5 * MS_PER_MINUTE,
    CacheName.SPACED_REP_INSIGHTS: 10 * MS_PER_MINUTE,
    CacheName.DASHBOARD_DATA: 5 * MS_PER_MINUTE,
    CacheName.LEARNING_PATTERN: 5 * MS_PER_MINUTE,
    CacheName.CONCEPT_MASTERY: 10 * MS_PER_MINUTE,
}


@dataclass(frozen=True)
class CacheEntry:
    """
    A cached aggregate.

    Attributes:
        payload: JSON-serialized aggregate.
        version: Schema version the payload was written with.
    """

    user_id: str
    name: CacheName
    payload: str
    computed_at: int
    expires_at: int
    version: int

    def is_valid(self, now: int, current_version: int) -> bool:
        return self.expires_at > now and self.version == current_version


@dataclass(frozen=True)
class CacheMetric:
    """One cache access, recorded for monitoring only."""

    cache_key: str
    hit_type: HitType
    timestamp: int
    user_id: str | None = None
    computation_time_ms: int | None = None
    ttl_ms: int | None = None


@dataclass(frozen=True)
class KeyAnalytics:
    cache_key: str
    requests: int
    hits: int
    misses: int
    expired: int
    hit_rate: float
    avg_computation_time_ms: float | None = None


@dataclass(frozen=True)
class CacheAnalytics:
    total_requests: int
    hits: int
    misses: int
    expired: int
    hit_rate: float
    avg_computation_time_ms: float | None
    by_key: list[KeyAnalytics]
    active_entries: int
    expired_entries: int

    @property
    def total_entries(self) -> int:
        return self.active_entries + self.expired_entries
