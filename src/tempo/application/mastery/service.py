"""
Concept mastery service: loads review history and caches per-concept mastery.
"""

import logging
from dataclasses import asdict

from tempo.application.cache.service import CacheLayer
from tempo.application.utils.clock import Clock, system_clock
from tempo.domain.cache.models import CacheName
from tempo.domain.constants import MASTERY_LOOKBACK_DAYS, MASTERY_REVIEW_LIMIT, MS_PER_DAY
from tempo.domain.ports import CardRepository, ReviewRecordStore
from tempo.domain.scheduling.models import (
    ConceptMastery,
    DifficultyTrend,
    MasteryCategory,
)

from .tracker import build_concept_masteries

logger = logging.getLogger(__name__)


def _decode(data: dict) -> ConceptMastery:
    return ConceptMastery(
        **{
            **data,
            "difficulty_trend": DifficultyTrend(data["difficulty_trend"]),
            "mastery_category": MasteryCategory(data["mastery_category"]),
        }
    )


class ConceptMasteryService:
    def __init__(
        self,
        cards: CardRepository,
        reviews: ReviewRecordStore,
        cache: CacheLayer,
        clock: Clock = system_clock,
    ):
        self._cards = cards
        self._reviews = reviews
        self._cache = cache
        self._clock = clock

    async def _compute(self, user_id: str) -> dict[str, dict]:
        now = self._clock()
        reviews = await self._reviews.list_for_user(
            user_id, since=now - MASTERY_LOOKBACK_DAYS * MS_PER_DAY, limit=MASTERY_REVIEW_LIMIT
        )
        cards = await self._cards.list_user_cards(user_id)
        masteries = build_concept_masteries(cards, reviews, now)
        logger.debug(f"Computed mastery of {len(masteries)} concepts for {user_id}")
        return {concept: asdict(m) for concept, m in masteries.items()}

    async def get_masteries(self, user_id: str) -> dict[str, ConceptMastery]:
        data = await self._cache.get_or_compute(
            user_id, CacheName.CONCEPT_MASTERY, lambda: self._compute(user_id)
        )
        return {concept: _decode(item) for concept, item in data.items()}
