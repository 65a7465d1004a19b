"""
Learning pattern service: Application layer orchestrator.

Coordinates loading review history, running the PatternAnalyzer, persisting
the result and serving it through the cache.
"""

import logging

from pydantic import ValidationError as PydanticValidationError

from tempo.application.cache.service import CacheLayer
from tempo.application.utils.clock import Clock, system_clock
from tempo.domain.cache.models import CacheName
from tempo.domain.constants import MS_PER_DAY, PATTERN_HISTORY_LIMIT, PATTERN_LOOKBACK_DAYS
from tempo.domain.exceptions import NotFoundError, ValidationError
from tempo.domain.patterns.models import LearningPattern, PatternResult, PersonalizationConfig
from tempo.domain.ports import CardRepository, PatternStore, ReviewRecordStore

from .analyzer import PatternAnalyzer

logger = logging.getLogger(__name__)


class LearningPatternService:
    """
    Application service for computing and serving learning patterns.

    Depends on the store ports, not on concrete adapters.
    """

    def __init__(
        self,
        cards: CardRepository,
        reviews: ReviewRecordStore,
        patterns: PatternStore,
        cache: CacheLayer,
        analyzer: PatternAnalyzer | None = None,
        clock: Clock = system_clock,
    ):
        self._cards = cards
        self._reviews = reviews
        self._patterns = patterns
        self._cache = cache
        self._analyzer = analyzer or PatternAnalyzer()
        self._clock = clock

    async def recompute(self, user_id: str) -> PatternResult:
        """
        Rebuild the pattern from the review log and persist it.

        The stored personalization config is carried over. Insufficient data is
        reported in the result; the stored pattern is left untouched.
        """
        now = self._clock()
        reviews = await self._reviews.list_for_user(
            user_id,
            since=now - PATTERN_LOOKBACK_DAYS * MS_PER_DAY,
            limit=PATTERN_HISTORY_LIMIT,
        )
        cards = await self._cards.list_user_cards(user_id)
        existing = await self._patterns.get(user_id)

        result = self._analyzer.compute_pattern(
            user_id,
            reviews,
            cards,
            now,
            config=existing.config if existing else None,
        )
        if result.pattern is not None:
            written = await self._patterns.save_if_newer(result.pattern)
            if not written:
                logger.info(f"Discarded recomputed pattern for {user_id}: stored one is newer")
        return result

    async def _load(self, user_id: str) -> dict | None:
        result = await self.recompute(user_id)
        pattern = result.pattern
        if pattern is None:
            # Not enough reviews for a full pass; serve whatever folds produced
            pattern = await self._patterns.get(user_id)
        return pattern.model_dump(mode="json") if pattern else None

    async def get_pattern(self, user_id: str) -> LearningPattern | None:
        """
        Current pattern of the user, or None when there is no data yet.
        """
        data = await self._cache.get_or_compute(
            user_id, CacheName.LEARNING_PATTERN, lambda: self._load(user_id)
        )
        if data is None:
            return None
        return LearningPattern.model_validate(data)

    async def get_stored_pattern(self, user_id: str) -> LearningPattern | None:
        """
        Cached or persisted pattern, without running the analyzer.

        Reviews read the pattern this way; recomputation is left to deferred tasks.
        """
        data = await self._cache.get(user_id, CacheName.LEARNING_PATTERN)
        if data is not None:
            return LearningPattern.model_validate(data)
        return await self._patterns.get(user_id)

    async def update_config(self, user_id: str, **changes) -> LearningPattern:
        """
        Change personalization settings of an existing pattern.

        Raises:
            NotFoundError: The user has no pattern yet.
            ValidationError: A setting is out of range.
        """
        pattern = await self._patterns.get(user_id)
        if pattern is None:
            raise NotFoundError(f"No learning pattern for user {user_id}")

        try:
            config = PersonalizationConfig.model_validate(
                {**pattern.config.model_dump(), **changes}
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid personalization config: {e}") from e

        updated = pattern.model_copy(
            update={"config": config, "last_updated": max(self._clock(), pattern.last_updated)}
        )
        await self._patterns.save_if_newer(updated)
        await self._cache.invalidate(user_id, CacheName.LEARNING_PATTERN)
        return updated
