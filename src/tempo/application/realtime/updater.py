"""
Real-time adaptation of learning patterns.

Per user, interactions move through:

    recorded -> (debounce) -> folded -> (significance check) -> path regenerated | no-op

Folds and regenerations run as deferred tasks. They may be delayed, skipped
or repeated, so both are idempotent and report a `reason` instead of raising
when there is nothing to do.
"""

import logging

from tempo.application.cache.service import CacheLayer
from tempo.application.config import AppConfig
from tempo.application.priority.engine import PriorityEngine
from tempo.application.scheduling.sm2 import validate_quality
from tempo.application.utils.clock import Clock, system_clock
from tempo.application.utils.ids import generate_id
from tempo.application.utils.stats import mean, success_rate
from tempo.domain.cache.models import CacheName
from tempo.domain.constants import (
    MIN_SIGNIFICANCE_SAMPLES,
    MS_PER_DAY,
    QUEUE_REVIEW_LIMIT,
    QUEUE_REVIEW_LOOKBACK_DAYS,
    REGENERATION_QUEUE_SIZE,
    ROLLING_WINDOW_SIZE,
    SIGNIFICANCE_WINDOW_MS,
    TOP_PRIORITY_PREVIEW,
)
from tempo.domain.exceptions import AuthorizationError, NotFoundError, ValidationError
from tempo.domain.ports import (
    CardRepository,
    InteractionStore,
    PatternStore,
    ReviewRecordStore,
    SnapshotStore,
    TaskQueue,
)
from tempo.domain.realtime.models import (
    CardInteraction,
    DeferredTask,
    FoldResult,
    InteractionType,
    RecordResult,
    RegenerationResult,
    StudyPathSnapshot,
    TaskKind,
)

from .fold import fold_interactions, significant_changes

logger = logging.getLogger(__name__)


def _check_rating(name: str, value: int | None) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
        raise ValidationError(f"{name} must be an integer between 1 and 5, got {value!r}")


class RealTimeUpdater:
    """
    Records interactions and keeps the user's pattern and study path fresh.
    """

    def __init__(
        self,
        cards: CardRepository,
        reviews: ReviewRecordStore,
        patterns: PatternStore,
        interactions: InteractionStore,
        snapshots: SnapshotStore,
        tasks: TaskQueue,
        cache: CacheLayer | None = None,
        engine: PriorityEngine | None = None,
        config: AppConfig | None = None,
        clock: Clock = system_clock,
    ):
        self._cards = cards
        self._reviews = reviews
        self._patterns = patterns
        self._interactions = interactions
        self._snapshots = snapshots
        self._tasks = tasks
        self._cache = cache
        self._config = config or AppConfig()
        self._engine = engine or PriorityEngine(timezone=self._config.timezone)
        self._clock = clock

    async def record_interaction(
        self,
        user_id: str,
        card_id: str,
        interaction_type: InteractionType,
        quality: int | None = None,
        response_time_ms: int | None = None,
        difficulty_rating: int | None = None,
        confidence_level: int | None = None,
        session_id: str | None = None,
    ) -> RecordResult:
        """
        Persist an interaction and schedule the follow-up work.

        A debounced fold is always submitted; a path regeneration is submitted
        immediately when the recent interactions deviate significantly from
        the stored baseline.

        Raises:
            NotFoundError: Unknown card.
            AuthorizationError: The card's deck belongs to someone else.
            ValidationError: Quality or a rating is out of range.
        """
        if quality is not None:
            validate_quality(quality)
        _check_rating("difficulty_rating", difficulty_rating)
        _check_rating("confidence_level", confidence_level)
        if response_time_ms is not None and response_time_ms < 0:
            raise ValidationError(f"response_time_ms must be >= 0, got {response_time_ms}")

        card = await self._cards.get_card(card_id)
        if card is None:
            raise NotFoundError(f"Card {card_id} not found")
        deck = await self._cards.get_deck(card.deck_id)
        if deck is None or deck.user_id != user_id:
            raise AuthorizationError(f"User {user_id} cannot access card {card_id}")

        interaction = CardInteraction(
            id=generate_id("int"),
            user_id=user_id,
            card_id=card_id,
            deck_id=card.deck_id,
            interaction_type=InteractionType(interaction_type),
            timestamp=self._clock(),
            quality=quality,
            response_time_ms=response_time_ms,
            difficulty_rating=difficulty_rating,
            confidence_level=confidence_level,
            session_id=session_id,
        )
        await self._interactions.add(interaction)

        await self._tasks.submit(
            DeferredTask(kind=TaskKind.FOLD_PATTERN, user_id=user_id),
            delay_ms=self._config.debounce_ms,
        )

        significant = await self.check_significant_change(user_id)
        if significant:
            await self._tasks.submit(
                DeferredTask(
                    kind=TaskKind.REGENERATE_PATH,
                    user_id=user_id,
                    deck_id=card.deck_id,
                    session_id=session_id,
                    trigger_reason=f"{interaction.interaction_type.value}_significant_change",
                )
            )
            logger.info(f"Significant change for {user_id}; regenerating path of {card.deck_id}")

        return RecordResult(interaction_id=interaction.id, path_regeneration_triggered=significant)

    async def check_significant_change(self, user_id: str) -> bool:
        """
        Compare the last five minutes against the stored 7-day baseline.

        Success rate deviation is absolute; response time deviation is
        relative to the baseline. A user without a pattern always counts as
        a significant change.
        """
        now = self._clock()
        recent = await self._interactions.list_since(
            user_id, now - SIGNIFICANCE_WINDOW_MS, ROLLING_WINDOW_SIZE
        )
        if len(recent) < MIN_SIGNIFICANCE_SAMPLES:
            return False

        pattern = await self._patterns.get(user_id)
        if pattern is None:
            return True

        baseline = pattern.trends.last_7_days
        threshold = self._config.significance_threshold

        outcomes = [i.was_successful for i in recent if i.was_successful is not None]
        if outcomes and abs(success_rate(outcomes) - baseline.success_rate) > threshold:
            return True

        timed = [float(i.response_time_ms) for i in recent if i.response_time_ms is not None]
        if timed:
            deviation = abs(mean(timed) - baseline.average_response_time) / max(
                baseline.average_response_time, 1
            )
            if deviation > threshold:
                return True

        return False

    async def fold(self, user_id: str, force: bool = False) -> FoldResult:
        """
        Fold unprocessed interactions into the stored pattern.

        Skips with `frequency_limit` when the pattern changed less than the
        minimum update interval ago (unless forced) and with
        `no_new_interactions` when nothing is pending.
        """
        now = self._clock()
        current = await self._patterns.get(user_id)
        if (
            not force
            and current is not None
            and now - current.last_updated < self._config.min_update_interval_ms
        ):
            return FoldResult(updated=False, reason="frequency_limit")

        batch = await self._interactions.list_unprocessed(user_id, self._config.fold_batch_size)
        if not batch:
            return FoldResult(updated=False, reason="no_new_interactions")

        updated = fold_interactions(current, user_id, batch, now)
        written = False
        if updated is not None:
            written = await self._patterns.save_if_newer(updated)

        await self._interactions.mark_processed([i.id for i in batch])

        if updated is None:
            return FoldResult(
                updated=False, reason="no_pattern_changes", interactions_processed=len(batch)
            )
        if not written:
            logger.info(f"Fold for {user_id} superseded by a newer pattern")
            return FoldResult(updated=False, reason="superseded", interactions_processed=len(batch))

        if self._cache is not None:
            await self._cache.invalidate(user_id, CacheName.LEARNING_PATTERN)

        changes = significant_changes(current, updated)
        logger.info(
            f"Folded {len(batch)} interactions for {user_id}: {changes or 'no major change'}"
        )
        return FoldResult(
            updated=True,
            interactions_processed=len(batch),
            significant_changes=changes,
        )

    async def regenerate_path(
        self,
        user_id: str,
        deck_id: str,
        session_id: str | None = None,
        trigger_reason: str = "manual",
    ) -> RegenerationResult:
        """
        Re-rank the deck's due cards and, for a session, record a snapshot.

        Raises:
            AuthorizationError: The deck is missing or belongs to someone else.
        """
        deck = await self._cards.get_deck(deck_id)
        if deck is None or deck.user_id != user_id:
            raise AuthorizationError(f"User {user_id} cannot access deck {deck_id}")

        pattern = await self._patterns.get(user_id)
        if pattern is None:
            return RegenerationResult(regenerated=False, reason="no_learning_patterns")

        now = self._clock()
        due = await self._cards.list_due_cards(deck_id, now, REGENERATION_QUEUE_SIZE)
        if not due:
            return RegenerationResult(regenerated=False, reason="no_cards_due")

        reviews = await self._reviews.list_for_user(
            user_id,
            since=now - QUEUE_REVIEW_LOOKBACK_DAYS * MS_PER_DAY,
            limit=QUEUE_REVIEW_LIMIT,
        )
        ranked = self._engine.rank(due, reviews, pattern, None, now)

        snapshot_id = None
        if session_id is not None:
            snapshot = StudyPathSnapshot(
                id=generate_id("path"),
                user_id=user_id,
                deck_id=deck_id,
                session_id=session_id,
                original_order=[card.id for card in due],
                new_order=[p.card_id for p in ranked],
                priorities=ranked,
                trigger_reason=trigger_reason,
                timestamp=now,
            )
            await self._snapshots.add(snapshot)
            snapshot_id = snapshot.id

        logger.info(f"Regenerated path of {deck_id} for {user_id} ({trigger_reason})")
        return RegenerationResult(
            regenerated=True,
            cards_reordered=len(ranked),
            top_priority_cards=ranked[:TOP_PRIORITY_PREVIEW],
            trigger_reason=trigger_reason,
            snapshot_id=snapshot_id,
        )

    async def recent_snapshots(self, session_id: str, limit: int = 5) -> list[StudyPathSnapshot]:
        """Snapshots of a session, newest first."""
        return await self._snapshots.list_for_session(session_id, limit)

    async def handle(self, task: DeferredTask) -> FoldResult | RegenerationResult:
        """Entry point for the task queue."""
        if task.kind is TaskKind.FOLD_PATTERN:
            return await self.fold(task.user_id, force=task.force)
        if task.kind is TaskKind.REGENERATE_PATH:
            if task.deck_id is None:
                raise ValidationError("Path regeneration needs a deck id")
            return await self.regenerate_path(
                task.user_id,
                task.deck_id,
                session_id=task.session_id,
                trigger_reason=task.trigger_reason or "deferred",
            )
        raise ValidationError(f"RealTimeUpdater cannot handle {task.kind.value} tasks")
