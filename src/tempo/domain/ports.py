"""
Ports (interfaces) for persistence and deferred execution.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete
implementations. Every method is a suspension point; nothing else in the
engine awaits.
"""

from abc import ABC, abstractmethod

from tempo.domain.cache.models import CacheEntry, CacheMetric, CacheName
from tempo.domain.patterns.models import LearningPattern
from tempo.domain.realtime.models import CardInteraction, DeferredTask, StudyPathSnapshot
from tempo.domain.scheduling.models import Card, CardSchedulingState, Deck, ReviewRecord


class CardRepository(ABC):
    """
    Port for reading cards and writing their scheduling state.

    The scheduler only ever touches `Card.scheduling`.
    """

    @abstractmethod
    async def get_card(self, card_id: str) -> Card | None:
        pass

    @abstractmethod
    async def get_deck(self, deck_id: str) -> Deck | None:
        pass

    @abstractmethod
    async def compare_and_set_scheduling(
        self,
        card_id: str,
        expected: CardSchedulingState | None,
        new_state: CardSchedulingState,
    ) -> bool:
        """
        Atomically replace the card's scheduling state.

        Args:
            expected: The state observed before computing `new_state`.
            new_state: The state to write.

        Returns:
            False if the stored state no longer equals `expected`.
        """
        pass

    @abstractmethod
    async def list_due_cards(self, deck_id: str, now: int, limit: int) -> list[Card]:
        """Scheduled cards with due_date <= now, ordered by due_date ascending."""
        pass

    @abstractmethod
    async def list_new_cards(self, deck_id: str, limit: int) -> list[Card]:
        """Cards that have never been scheduled or sit at repetition 0."""
        pass

    @abstractmethod
    async def list_user_cards(self, user_id: str) -> list[Card]:
        pass


class ReviewRecordStore(ABC):
    """Append-only log of review outcomes."""

    @abstractmethod
    async def append(self, record: ReviewRecord) -> None:
        pass

    @abstractmethod
    async def list_for_user(
        self, user_id: str, since: int, limit: int | None = None
    ) -> list[ReviewRecord]:
        """
        Reviews of a user with timestamp >= since, newest first.
        """
        pass

    @abstractmethod
    async def list_for_card(self, card_id: str) -> list[ReviewRecord]:
        """Reviews of a card, oldest first."""
        pass


class PatternStore(ABC):
    @abstractmethod
    async def get(self, user_id: str) -> LearningPattern | None:
        pass

    @abstractmethod
    async def save_if_newer(self, pattern: LearningPattern) -> bool:
        """
        Store the pattern unless the stored one has a later `last_updated`.

        Returns:
            True if written.
        """
        pass


class InteractionStore(ABC):
    @abstractmethod
    async def add(self, interaction: CardInteraction) -> None:
        pass

    @abstractmethod
    async def list_unprocessed(self, user_id: str, limit: int) -> list[CardInteraction]:
        """Unprocessed interactions, newest first."""
        pass

    @abstractmethod
    async def list_since(self, user_id: str, since: int, limit: int) -> list[CardInteraction]:
        """Interactions with timestamp >= since, newest first."""
        pass

    @abstractmethod
    async def mark_processed(self, interaction_ids: list[str]) -> int:
        pass


class SnapshotStore(ABC):
    @abstractmethod
    async def add(self, snapshot: StudyPathSnapshot) -> None:
        pass

    @abstractmethod
    async def list_for_session(self, session_id: str, limit: int) -> list[StudyPathSnapshot]:
        """Snapshots of a session, newest first."""
        pass


class CacheStore(ABC):
    """Keyed by (user_id, cache name)."""

    @abstractmethod
    async def get(self, user_id: str, name: CacheName) -> CacheEntry | None:
        pass

    @abstractmethod
    async def put(self, entry: CacheEntry) -> None:
        pass

    @abstractmethod
    async def delete(self, user_id: str, name: CacheName) -> bool:
        pass

    @abstractmethod
    async def delete_user(self, user_id: str) -> int:
        pass

    @abstractmethod
    async def delete_expired(self, now: int, limit: int) -> int:
        """Delete at most `limit` entries with expires_at <= now."""
        pass

    @abstractmethod
    async def count_entries(self, now: int) -> tuple[int, int]:
        """
        Returns:
            (active, expired) entry counts.
        """
        pass


class CacheMetricStore(ABC):
    @abstractmethod
    async def record(self, metric: CacheMetric) -> None:
        pass

    @abstractmethod
    async def list_since(self, since: int) -> list[CacheMetric]:
        pass

    @abstractmethod
    async def delete_before(self, cutoff: int, limit: int) -> int:
        pass


class TaskQueue(ABC):
    """
    Deferred-task primitive ("run this later").

    Contract: at-least-once, possibly delayed, possibly skipped. No ordering
    guarantee across task kinds.
    """

    @abstractmethod
    async def submit(self, task: DeferredTask, delay_ms: int = 0) -> None:
        pass
