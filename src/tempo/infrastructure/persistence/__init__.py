# Infrastructure Persistence Package
from .memory import (
    InMemoryCacheMetricStore,
    InMemoryCacheStore,
    InMemoryCardRepository,
    InMemoryInteractionStore,
    InMemoryPatternStore,
    InMemoryReviewRecordStore,
    InMemorySnapshotStore,
)

__all__ = [
    "InMemoryCardRepository",
    "InMemoryReviewRecordStore",
    "InMemoryPatternStore",
    "InMemoryInteractionStore",
    "InMemorySnapshotStore",
    "InMemoryCacheStore",
    "InMemoryCacheMetricStore",
]
