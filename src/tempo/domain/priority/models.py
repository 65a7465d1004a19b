"""Domain models for study-queue prioritization."""

from dataclasses import dataclass, field

from tempo.domain.constants import (
    DEFAULT_DIFFICULTY_ADAPTATION,
    DEFAULT_INCONSISTENCY_BOOST,
    DEFAULT_PATTERN_WEIGHT,
    DEFAULT_PLATEAU_BOOST,
    DEFAULT_SRS_WEIGHT,
    DEFAULT_TIME_OF_DAY_BOOST,
)
from tempo.domain.exceptions import ValidationError
from tempo.domain.patterns.models import PersonalizationConfig


@dataclass(frozen=True)
class PriorityWeights:
    """
    Weights used by the priority engine.

    A boost of 1.0 (or adaptation of 0.0) disables that personalization.
    """

    srs_weight: float = DEFAULT_SRS_WEIGHT
    learning_pattern_weight: float = DEFAULT_PATTERN_WEIGHT
    inconsistency_boost: float = DEFAULT_INCONSISTENCY_BOOST
    plateau_boost: float = DEFAULT_PLATEAU_BOOST
    time_of_day_boost: float = DEFAULT_TIME_OF_DAY_BOOST
    difficulty_adaptation: float = DEFAULT_DIFFICULTY_ADAPTATION

    def __post_init__(self):
        for name in ("srs_weight", "learning_pattern_weight", "difficulty_adaptation"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValidationError(f"{name} must be within [0, 1], got {value}")
        for name in ("inconsistency_boost", "plateau_boost", "time_of_day_boost"):
            value = getattr(self, name)
            if value < 1.0:
                raise ValidationError(f"{name} must be >= 1.0, got {value}")

    @classmethod
    def from_config(cls, config: PersonalizationConfig) -> "PriorityWeights":
        influence = config.learning_pattern_influence
        return cls(
            srs_weight=1 - influence,
            learning_pattern_weight=influence,
            inconsistency_boost=(
                config.inconsistency_boost if config.prioritize_inconsistent_cards else 1.0
            ),
            plateau_boost=config.plateau_boost if config.focus_on_plateau_topics else 1.0,
            time_of_day_boost=(
                config.time_of_day_boost if config.optimize_for_time_of_day else 1.0
            ),
            difficulty_adaptation=(
                config.difficulty_adaptation if config.adapt_difficulty_progression else 0.0
            ),
        )


@dataclass(frozen=True)
class PriorityResult:
    score: float
    applied_boosts: list[str] = field(default_factory=list)
    reasoning: str = ""


@dataclass(frozen=True)
class CardPriority:
    """A ranked card: its score and the boosts that produced it."""

    card_id: str
    score: float
    boosts: list[str]
    reasoning: str
    due_date: int = 0


@dataclass(frozen=True)
class QueuedCard:
    """An entry of the study queue handed to the presentation layer."""

    card_id: str
    score: float
    reasoning: str
