"""
In-memory store adapters: Infrastructure reference implementations.

Implements every persistence port with plain dicts and lists. Each store
serializes its mutations with an asyncio.Lock so the compare-and-set and
save-if-newer contracts hold under concurrent tasks.
"""

import asyncio
import logging
from dataclasses import replace

from tempo.domain.cache.models import CacheEntry, CacheMetric, CacheName
from tempo.domain.patterns.models import LearningPattern
from tempo.domain.ports import (
    CacheMetricStore,
    CacheStore,
    CardRepository,
    InteractionStore,
    PatternStore,
    ReviewRecordStore,
    SnapshotStore,
)
from tempo.domain.realtime.models import CardInteraction, StudyPathSnapshot
from tempo.domain.scheduling.models import Card, CardSchedulingState, Deck, ReviewRecord

logger = logging.getLogger(__name__)


class InMemoryCardRepository(CardRepository):
    def __init__(self, decks: list[Deck] | None = None, cards: list[Card] | None = None):
        self._decks: dict[str, Deck] = {d.id: d for d in decks or []}
        self._cards: dict[str, Card] = {c.id: c for c in cards or []}
        self._lock = asyncio.Lock()

    def add_deck(self, deck: Deck) -> None:
        self._decks[deck.id] = deck

    def add_card(self, card: Card) -> None:
        self._cards[card.id] = card

    async def get_card(self, card_id: str) -> Card | None:
        return self._cards.get(card_id)

    async def get_deck(self, deck_id: str) -> Deck | None:
        return self._decks.get(deck_id)

    async def compare_and_set_scheduling(
        self,
        card_id: str,
        expected: CardSchedulingState | None,
        new_state: CardSchedulingState,
    ) -> bool:
        async with self._lock:
            card = self._cards.get(card_id)
            if card is None or card.scheduling != expected:
                return False
            self._cards[card_id] = replace(card, scheduling=new_state)
            return True

    async def list_due_cards(self, deck_id: str, now: int, limit: int) -> list[Card]:
        due = [
            c
            for c in self._cards.values()
            if c.deck_id == deck_id and c.scheduling is not None and c.scheduling.due_date <= now
        ]
        due.sort(key=lambda c: (c.scheduling.due_date, c.id))
        return due[:limit]

    async def list_new_cards(self, deck_id: str, limit: int) -> list[Card]:
        new = [c for c in self._cards.values() if c.deck_id == deck_id and c.is_new]
        new.sort(key=lambda c: c.id)
        return new[:limit]

    async def list_user_cards(self, user_id: str) -> list[Card]:
        return sorted(
            (c for c in self._cards.values() if c.user_id == user_id),
            key=lambda c: c.id,
        )


class InMemoryReviewRecordStore(ReviewRecordStore):
    def __init__(self, records: list[ReviewRecord] | None = None):
        self._records: list[ReviewRecord] = list(records or [])

    async def append(self, record: ReviewRecord) -> None:
        self._records.append(record)

    async def list_for_user(
        self, user_id: str, since: int, limit: int | None = None
    ) -> list[ReviewRecord]:
        matching = sorted(
            (r for r in self._records if r.user_id == user_id and r.timestamp >= since),
            key=lambda r: (r.timestamp, r.id),
            reverse=True,
        )
        return matching if limit is None else matching[:limit]

    async def list_for_card(self, card_id: str) -> list[ReviewRecord]:
        return sorted(
            (r for r in self._records if r.card_id == card_id),
            key=lambda r: (r.timestamp, r.id),
        )


class InMemoryPatternStore(PatternStore):
    def __init__(self):
        self._patterns: dict[str, LearningPattern] = {}
        self._lock = asyncio.Lock()

    async def get(self, user_id: str) -> LearningPattern | None:
        return self._patterns.get(user_id)

    async def save_if_newer(self, pattern: LearningPattern) -> bool:
        async with self._lock:
            stored = self._patterns.get(pattern.user_id)
            if stored is not None and stored.last_updated > pattern.last_updated:
                logger.debug(f"Rejected stale pattern for {pattern.user_id}")
                return False
            self._patterns[pattern.user_id] = pattern
            return True


class InMemoryInteractionStore(InteractionStore):
    def __init__(self):
        self._interactions: dict[str, CardInteraction] = {}
        self._lock = asyncio.Lock()

    async def add(self, interaction: CardInteraction) -> None:
        self._interactions[interaction.id] = interaction

    def _newest_first(self, user_id: str) -> list[CardInteraction]:
        return sorted(
            (i for i in self._interactions.values() if i.user_id == user_id),
            key=lambda i: (i.timestamp, i.id),
            reverse=True,
        )

    async def list_unprocessed(self, user_id: str, limit: int) -> list[CardInteraction]:
        return [i for i in self._newest_first(user_id) if not i.processed][:limit]

    async def list_since(self, user_id: str, since: int, limit: int) -> list[CardInteraction]:
        return [i for i in self._newest_first(user_id) if i.timestamp >= since][:limit]

    async def mark_processed(self, interaction_ids: list[str]) -> int:
        marked = 0
        async with self._lock:
            for interaction_id in interaction_ids:
                current = self._interactions.get(interaction_id)
                if current is not None and not current.processed:
                    self._interactions[interaction_id] = current.mark_processed()
                    marked += 1
        return marked


class InMemorySnapshotStore(SnapshotStore):
    def __init__(self):
        self._snapshots: list[StudyPathSnapshot] = []

    async def add(self, snapshot: StudyPathSnapshot) -> None:
        self._snapshots.append(snapshot)

    async def list_for_session(self, session_id: str, limit: int) -> list[StudyPathSnapshot]:
        matching = sorted(
            (s for s in self._snapshots if s.session_id == session_id),
            key=lambda s: (s.timestamp, s.id),
            reverse=True,
        )
        return matching[:limit]


class InMemoryCacheStore(CacheStore):
    def __init__(self):
        self._entries: dict[tuple[str, CacheName], CacheEntry] = {}
        self._lock = asyncio.Lock()

    async def get(self, user_id: str, name: CacheName) -> CacheEntry | None:
        return self._entries.get((user_id, name))

    async def put(self, entry: CacheEntry) -> None:
        self._entries[(entry.user_id, entry.name)] = entry

    async def delete(self, user_id: str, name: CacheName) -> bool:
        return self._entries.pop((user_id, name), None) is not None

    async def delete_user(self, user_id: str) -> int:
        async with self._lock:
            keys = [key for key in self._entries if key[0] == user_id]
            for key in keys:
                del self._entries[key]
        return len(keys)

    async def delete_expired(self, now: int, limit: int) -> int:
        async with self._lock:
            expired = sorted(
                (e for e in self._entries.values() if e.expires_at <= now),
                key=lambda e: e.expires_at,
            )[:limit]
            for entry in expired:
                del self._entries[(entry.user_id, entry.name)]
        return len(expired)

    async def count_entries(self, now: int) -> tuple[int, int]:
        expired = sum(1 for e in self._entries.values() if e.expires_at <= now)
        return len(self._entries) - expired, expired


class InMemoryCacheMetricStore(CacheMetricStore):
    def __init__(self):
        self._metrics: list[CacheMetric] = []
        self._lock = asyncio.Lock()

    async def record(self, metric: CacheMetric) -> None:
        self._metrics.append(metric)

    async def list_since(self, since: int) -> list[CacheMetric]:
        return [m for m in self._metrics if m.timestamp >= since]

    async def delete_before(self, cutoff: int, limit: int) -> int:
        async with self._lock:
            old = [m for m in self._metrics if m.timestamp < cutoff][:limit]
            doomed = {id(m) for m in old}
            self._metrics = [m for m in self._metrics if id(m) not in doomed]
        return len(old)
