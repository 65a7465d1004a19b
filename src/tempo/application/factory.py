"""
Engine Factory
Centralizes the wiring of stores, the task queue and the application services.
"""

from dataclasses import dataclass

from tempo.application.cache.analytics import CacheAnalyticsService
from tempo.application.cache.service import CacheLayer
from tempo.application.config import AppConfig
from tempo.application.mastery.service import ConceptMasteryService
from tempo.application.patterns.service import LearningPatternService
from tempo.application.priority.engine import PriorityEngine
from tempo.application.queue_service import StudyQueueService
from tempo.application.realtime.updater import RealTimeUpdater
from tempo.application.review_service import ReviewService
from tempo.application.scheduling.sm2 import Sm2Scheduler
from tempo.application.utils.clock import Clock, system_clock
from tempo.domain.ports import CardRepository, ReviewRecordStore
from tempo.domain.realtime.models import DeferredTask, TaskKind
from tempo.infrastructure.persistence.memory import (
    InMemoryCacheMetricStore,
    InMemoryCacheStore,
    InMemoryCardRepository,
    InMemoryInteractionStore,
    InMemoryPatternStore,
    InMemoryReviewRecordStore,
    InMemorySnapshotStore,
)
from tempo.infrastructure.tasks import AsyncioTaskQueue


@dataclass
class Engine:
    config: AppConfig
    cards: CardRepository
    reviews: ReviewRecordStore
    tasks: AsyncioTaskQueue
    cache: CacheLayer
    cache_analytics: CacheAnalyticsService
    patterns: LearningPatternService
    mastery: ConceptMasteryService
    updater: RealTimeUpdater
    reviewer: ReviewService
    queue: StudyQueueService


def build_engine(
    config: AppConfig | None = None,
    cards: CardRepository | None = None,
    reviews: ReviewRecordStore | None = None,
    clock: Clock = system_clock,
) -> Engine:
    """
    Returns a fully wired Engine.

    Card and review stores may be supplied (e.g. seeded from an export); every
    other store is in-memory.
    """
    config = config or AppConfig()
    cards = cards or InMemoryCardRepository()
    reviews = reviews or InMemoryReviewRecordStore()
    pattern_store = InMemoryPatternStore()
    cache_store = InMemoryCacheStore()
    metric_store = InMemoryCacheMetricStore()
    snapshots = InMemorySnapshotStore()
    tasks = AsyncioTaskQueue()

    engine = PriorityEngine(timezone=config.timezone)
    cache = CacheLayer(cache_store, metric_store, config=config, clock=clock)
    patterns = LearningPatternService(cards, reviews, pattern_store, cache, clock=clock)
    mastery = ConceptMasteryService(cards, reviews, cache, clock=clock)
    updater = RealTimeUpdater(
        cards,
        reviews,
        pattern_store,
        InMemoryInteractionStore(),
        snapshots,
        tasks,
        cache=cache,
        engine=engine,
        config=config,
        clock=clock,
    )
    reviewer = ReviewService(
        cards,
        reviews,
        tasks,
        cache,
        patterns,
        mastery=mastery,
        updater=updater,
        scheduler=Sm2Scheduler(clock=clock),
        config=config,
        clock=clock,
    )
    queue = StudyQueueService(
        cards, reviews, snapshots, patterns, engine=engine, config=config, clock=clock
    )

    async def recompute(task: DeferredTask):
        return await patterns.recompute(task.user_id)

    tasks.register(TaskKind.FOLD_PATTERN, updater.handle)
    tasks.register(TaskKind.REGENERATE_PATH, updater.handle)
    tasks.register(TaskKind.RECOMPUTE_PATTERN, recompute)

    return Engine(
        config=config,
        cards=cards,
        reviews=reviews,
        tasks=tasks,
        cache=cache,
        cache_analytics=CacheAnalyticsService(cache_store, metric_store, clock=clock),
        patterns=patterns,
        mastery=mastery,
        updater=updater,
        reviewer=reviewer,
        queue=queue,
    )
