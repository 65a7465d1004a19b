"""
Study queue assembly.

A session with a fresh regenerated path is served from its snapshot.
Otherwise due cards (oldest due first) and new cards are ranked on demand
with the PriorityEngine.
"""

import logging

from tempo.application.config import AppConfig
from tempo.application.patterns.service import LearningPatternService
from tempo.application.priority.engine import PriorityEngine
from tempo.application.utils.clock import Clock, system_clock
from tempo.domain.constants import (
    MIN_NEW_CARDS,
    MS_PER_DAY,
    QUEUE_REVIEW_LIMIT,
    QUEUE_REVIEW_LOOKBACK_DAYS,
)
from tempo.domain.exceptions import AuthorizationError, ValidationError
from tempo.domain.ports import CardRepository, ReviewRecordStore, SnapshotStore
from tempo.domain.priority.models import QueuedCard

logger = logging.getLogger(__name__)


class StudyQueueService:
    def __init__(
        self,
        cards: CardRepository,
        reviews: ReviewRecordStore,
        snapshots: SnapshotStore,
        patterns: LearningPatternService,
        engine: PriorityEngine | None = None,
        config: AppConfig | None = None,
        clock: Clock = system_clock,
    ):
        self._cards = cards
        self._reviews = reviews
        self._snapshots = snapshots
        self._patterns = patterns
        self._config = config or AppConfig()
        self._engine = engine or PriorityEngine(timezone=self._config.timezone)
        self._clock = clock

    async def get_queue(
        self,
        user_id: str,
        deck_id: str,
        max_cards: int | None = None,
        session_id: str | None = None,
    ) -> list[QueuedCard]:
        """
        Ordered cards to study next, with per-card score and reasoning.

        Args:
            max_cards: Queue length; defaults to the daily new-card limit.
            session_id: Lets a fresh regenerated path take precedence.

        Raises:
            AuthorizationError: The deck is missing or belongs to someone else.
        """
        limit = max_cards if max_cards is not None else self._config.daily_new_card_limit
        if limit < 1:
            raise ValidationError(f"max_cards must be >= 1, got {limit}")

        deck = await self._cards.get_deck(deck_id)
        if deck is None or deck.user_id != user_id:
            raise AuthorizationError(f"User {user_id} cannot access deck {deck_id}")

        now = self._clock()
        if session_id is not None:
            queue = await self._from_snapshot(session_id, deck_id, limit, now)
            if queue is not None:
                return queue

        due = await self._cards.list_due_cards(deck_id, now, limit * 2)
        due_ids = {card.id for card in due}
        new_limit = max(MIN_NEW_CARDS, limit - len(due))
        new = [
            card
            for card in await self._cards.list_new_cards(deck_id, new_limit)
            if card.id not in due_ids
        ]
        candidates = due + new

        if not candidates:
            return []

        # Without a pattern the engine falls back to the traditional score
        pattern = await self._patterns.get_pattern(user_id)
        reviews = await self._reviews.list_for_user(
            user_id,
            since=now - QUEUE_REVIEW_LOOKBACK_DAYS * MS_PER_DAY,
            limit=QUEUE_REVIEW_LIMIT,
        )
        ranked = self._engine.rank(candidates, reviews, pattern, None, now)
        logger.debug(f"Ranked {len(ranked)} candidates for deck {deck_id}")
        return [
            QueuedCard(card_id=p.card_id, score=p.score, reasoning=p.reasoning)
            for p in ranked[:limit]
        ]

    async def _from_snapshot(
        self, session_id: str, deck_id: str, limit: int, now: int
    ) -> list[QueuedCard] | None:
        latest = await self._snapshots.list_for_session(session_id, 1)
        if not latest:
            return None
        snapshot = latest[0]
        stale = now - snapshot.timestamp >= self._config.snapshot_freshness_ms
        if snapshot.deck_id != deck_id or stale:
            return None

        queue = []
        for priority in snapshot.priorities[:limit]:
            # Cards deleted since the snapshot are skipped
            if await self._cards.get_card(priority.card_id) is None:
                logger.warning(f"Card {priority.card_id} in path {snapshot.id} no longer exists")
                continue
            queue.append(
                QueuedCard(
                    card_id=priority.card_id,
                    score=priority.score,
                    reasoning=priority.reasoning,
                )
            )
        return queue
