"""
Domain models for card scheduling.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, replace
from enum import Enum

from tempo.domain.constants import (
    DEFAULT_EASE_FACTOR,
    DEFAULT_INTERVAL,
    DEFAULT_REPETITION,
    EASY_EASE_THRESHOLD,
    HARD_EASE_THRESHOLD,
    MASTERY_ADVANCED_LEVEL,
    MASTERY_EXPERT_LEVEL,
    MASTERY_INTERMEDIATE_LEVEL,
    SUCCESS_QUALITY,
)


class Difficulty(str, Enum):
    """Difficulty bucket of a card, derived from its ease factor."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @classmethod
    def classify(cls, ease_factor: float) -> "Difficulty":
        if ease_factor > EASY_EASE_THRESHOLD:
            return cls.EASY
        if ease_factor < HARD_EASE_THRESHOLD:
            return cls.HARD
        return cls.MEDIUM


class DifficultyTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class MasteryCategory(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"

    @classmethod
    def from_level(cls, mastery_level: float) -> "MasteryCategory":
        if mastery_level >= MASTERY_EXPERT_LEVEL:
            return cls.EXPERT
        if mastery_level >= MASTERY_ADVANCED_LEVEL:
            return cls.ADVANCED
        if mastery_level >= MASTERY_INTERMEDIATE_LEVEL:
            return cls.INTERMEDIATE
        return cls.BEGINNER


@dataclass(frozen=True)
class CardSchedulingState:
    """
    SM-2 state of a single card.

    Attributes:
        repetition: Successful reviews since the last lapse.
        ease_factor: Interval growth multiplier, kept within [1.3, 3.0].
        interval: Days until the next review (>= 1).
        due_date: Epoch ms after which the card is eligible for review.
    """

    repetition: int = DEFAULT_REPETITION
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval: int = DEFAULT_INTERVAL
    due_date: int = 0

    @classmethod
    def initial(cls, now: int) -> "CardSchedulingState":
        """State of a card entering the scheduler for the first time."""
        return cls(due_date=now)


def resolve_state(state: CardSchedulingState | None, now: int) -> CardSchedulingState:
    """
    Single defaulting policy for scheduling state.

    Cards that never entered the scheduler get the initial state; partially
    broken records (non-positive interval, negative repetition) are repaired.
    """
    if state is None:
        return CardSchedulingState.initial(now)

    repaired = state
    if repaired.interval < 1:
        repaired = replace(repaired, interval=DEFAULT_INTERVAL)
    if repaired.repetition < 0:
        repaired = replace(repaired, repetition=DEFAULT_REPETITION)
    if repaired.ease_factor <= 0:
        repaired = replace(repaired, ease_factor=DEFAULT_EASE_FACTOR)
    return repaired


@dataclass(frozen=True)
class Deck:
    id: str
    user_id: str
    name: str


@dataclass(frozen=True)
class Card:
    """
    A study card as seen by the scheduler.

    `scheduling` is None until the card is reviewed or initialized.
    """

    id: str
    deck_id: str
    user_id: str
    front: str
    back: str
    scheduling: CardSchedulingState | None = None

    @property
    def is_new(self) -> bool:
        return self.scheduling is None or self.scheduling.repetition == 0


@dataclass(frozen=True)
class ReviewRecord:
    """
    Immutable record of one review outcome.

    Attributes:
        before: Scheduling state observed when the review started.
        after: Scheduling state written by the scheduler.
        hour_of_day: Local hour (0-23) the review happened in.
        predicted_confidence: Confidence reported by the scheduler.
        mastery_adjustment: Combined concept-mastery influence, if any.
    """

    id: str
    user_id: str
    card_id: str
    deck_id: str
    timestamp: int
    quality: int
    before: CardSchedulingState
    after: CardSchedulingState
    hour_of_day: int
    response_time_ms: int | None = None
    confidence_rating: int | None = None
    predicted_confidence: float | None = None
    mastery_adjustment: float | None = None
    study_mode: str = "adaptive-spaced-repetition"

    @property
    def was_successful(self) -> bool:
        return self.quality >= SUCCESS_QUALITY


@dataclass(frozen=True)
class ConceptMastery:
    """
    Mastery of a single concept (keyword) across the user's cards.

    Attributes:
        mastery_level: 0-1 scale.
        confidence_level: 0-1 scale, derived from result consistency.
        learning_velocity: Mastery gained per day for this concept.
    """

    concept_id: str
    mastery_level: float
    confidence_level: float
    learning_velocity: float
    difficulty_trend: DifficultyTrend
    mastery_category: MasteryCategory
    review_count: int = 0
    success_rate: float = 0.0
    average_response_time: float = 0.0
    last_reviewed: int | None = None


@dataclass(frozen=True)
class AdvanceResult:
    """Output of one scheduler step."""

    state: CardSchedulingState
    confidence: float
    mastery_adjustment: float = 0.0
