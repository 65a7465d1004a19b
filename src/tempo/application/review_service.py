"""
Review submission: the synchronous scheduling path.

The card's scheduling state is written with a compare-and-set before the
call returns. Everything else (pattern folding, path regeneration, pattern
recomputation) is handed to the task queue and may run later or not at all.
"""

import logging
from dataclasses import dataclass

from tempo.application.cache.service import CacheLayer
from tempo.application.config import AppConfig
from tempo.application.mastery.service import ConceptMasteryService
from tempo.application.mastery.tracker import mastery_for_card
from tempo.application.patterns.service import LearningPatternService
from tempo.application.realtime.updater import RealTimeUpdater
from tempo.application.scheduling.sm2 import Sm2Scheduler, validate_quality
from tempo.application.utils.clock import Clock, hour_of_day, system_clock
from tempo.application.utils.ids import generate_id
from tempo.domain.cache.models import CacheEvent
from tempo.domain.constants import DEFAULT_EASE_FACTOR
from tempo.domain.exceptions import (
    AuthorizationError,
    ConcurrentUpdateError,
    NotFoundError,
    ValidationError,
)
from tempo.domain.ports import CardRepository, ReviewRecordStore, TaskQueue
from tempo.domain.realtime.models import DeferredTask, InteractionType, TaskKind
from tempo.domain.scheduling.models import ReviewRecord, resolve_state

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReviewSubmission:
    card_id: str
    quality: int
    response_time_ms: int | None = None
    confidence_rating: int | None = None
    session_id: str | None = None


@dataclass(frozen=True)
class ReviewOutcome:
    next_review_date: int
    confidence: float
    message: str
    interval: int = 1
    ease_factor: float = DEFAULT_EASE_FACTOR
    repetition: int = 0


def personalized_message(confidence: float) -> str:
    if confidence > 0.8:
        detail = "You're mastering this topic well!"
    elif confidence < 0.4:
        detail = "This seems challenging - consider reviewing related concepts."
    else:
        detail = "You're making steady progress!"
    return f"Great job! {detail}"


class ReviewService:
    """
    Applies a review to a card and records it.
    """

    def __init__(
        self,
        cards: CardRepository,
        reviews: ReviewRecordStore,
        tasks: TaskQueue,
        cache: CacheLayer,
        patterns: LearningPatternService,
        mastery: ConceptMasteryService | None = None,
        updater: RealTimeUpdater | None = None,
        scheduler: Sm2Scheduler | None = None,
        config: AppConfig | None = None,
        clock: Clock = system_clock,
    ):
        self._cards = cards
        self._reviews = reviews
        self._tasks = tasks
        self._cache = cache
        self._patterns = patterns
        self._mastery = mastery
        self._updater = updater
        self._config = config or AppConfig()
        self._clock = clock
        self._scheduler = scheduler or Sm2Scheduler(clock=clock)

    async def submit_review(self, user_id: str, submission: ReviewSubmission) -> ReviewOutcome:
        """
        Schedule the card's next review.

        Raises:
            ValidationError: Quality, confidence rating or response time out of range.
            NotFoundError: Unknown card.
            AuthorizationError: Missing user id or the card belongs to someone else.
            ConcurrentUpdateError: The card was rescheduled concurrently.
        """
        if not user_id:
            raise AuthorizationError("An authenticated user is required")
        validate_quality(submission.quality)
        rating = submission.confidence_rating
        if rating is not None and (isinstance(rating, bool) or not 1 <= rating <= 5):
            raise ValidationError(f"Confidence rating must be between 1 and 5, got {rating!r}")
        elapsed = submission.response_time_ms
        if elapsed is not None and (
            isinstance(elapsed, bool) or not isinstance(elapsed, int) or elapsed < 0
        ):
            raise ValidationError(f"Response time must be a non-negative integer, got {elapsed!r}")

        card = await self._cards.get_card(submission.card_id)
        if card is None:
            raise NotFoundError(f"Card {submission.card_id} not found")
        deck = await self._cards.get_deck(card.deck_id)
        if deck is None or deck.user_id != user_id:
            raise AuthorizationError(f"User {user_id} cannot review card {card.id}")

        pattern = await self._patterns.get_stored_pattern(user_id)
        concept = None
        if self._mastery is not None and self._config.use_concept_mastery:
            concept = mastery_for_card(card, await self._mastery.get_masteries(user_id))

        now = self._clock()
        hour = hour_of_day(now, self._config.timezone)
        result = self._scheduler.advance(
            submission.quality,
            card.scheduling,
            pattern=pattern,
            concept_mastery=concept,
            hour_of_day=hour,
        )

        written = await self._cards.compare_and_set_scheduling(
            card.id, card.scheduling, result.state
        )
        if not written:
            raise ConcurrentUpdateError(
                f"Card {card.id} was updated concurrently; retry the review"
            )

        record = ReviewRecord(
            id=generate_id("rev"),
            user_id=user_id,
            card_id=card.id,
            deck_id=card.deck_id,
            timestamp=now,
            quality=submission.quality,
            before=resolve_state(card.scheduling, now),
            after=result.state,
            hour_of_day=hour,
            response_time_ms=submission.response_time_ms,
            confidence_rating=rating,
            predicted_confidence=result.confidence,
            mastery_adjustment=result.mastery_adjustment if concept is not None else None,
        )
        await self._reviews.append(record)
        await self._cache.on_event(user_id, CacheEvent.CARD_REVIEWED)

        await self._hand_off(user_id, card.id, submission)

        logger.info(
            f"Reviewed {card.id} (q={submission.quality}): next in {result.state.interval} days"
        )
        return ReviewOutcome(
            next_review_date=result.state.due_date,
            confidence=result.confidence,
            message=personalized_message(result.confidence),
            interval=result.state.interval,
            ease_factor=result.state.ease_factor,
            repetition=result.state.repetition,
        )

    async def _hand_off(self, user_id: str, card_id: str, submission: ReviewSubmission) -> None:
        # The card is already rescheduled; follow-up failures must not undo that
        try:
            if self._updater is not None:
                await self._updater.record_interaction(
                    user_id,
                    card_id,
                    InteractionType.ANSWER,
                    quality=submission.quality,
                    response_time_ms=submission.response_time_ms,
                    session_id=submission.session_id,
                )
            else:
                await self._tasks.submit(
                    DeferredTask(kind=TaskKind.RECOMPUTE_PATTERN, user_id=user_id)
                )
        except Exception as e:
            logger.error(f"Follow-up work for review of {card_id} failed: {e}", exc_info=True)
