# Domain Cache Package
from .models import (
    INVALIDATION_TABLE,
    CacheEntry,
    CacheEvent,
    CacheMetric,
    CacheName,
    HitType,
)

__all__ = [
    "INVALIDATION_TABLE",
    "CacheEntry",
    "CacheEvent",
    "CacheMetric",
    "CacheName",
    "HitType",
]
