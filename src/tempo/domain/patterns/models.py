"""
Domain models for per-user learning patterns.

LearningPattern is a derived aggregate that gets cached and persisted as
JSON, so it is modelled with pydantic rather than plain dataclasses.
"""

from enum import Enum

from pydantic import BaseModel, Field

from tempo.domain.constants import (
    DEFAULT_DIFFICULTY_ADAPTATION,
    DEFAULT_INCONSISTENCY_BOOST,
    DEFAULT_PATTERN_WEIGHT,
    DEFAULT_PLATEAU_BOOST,
    DEFAULT_TIME_OF_DAY_BOOST,
    INCONSISTENCY_THRESHOLD,
    MAX_EASE_BIAS,
    PLATEAU_THRESHOLD_DAYS,
)
from tempo.domain.scheduling.models import Difficulty


class TimeSlot(str, Enum):
    """Six fixed slots of the 24-hour clock."""

    EARLY_MORNING = "early_morning"  # 05-09
    MORNING = "morning"  # 09-13
    AFTERNOON = "afternoon"  # 13-17
    EVENING = "evening"  # 17-21
    NIGHT = "night"  # 21-24
    LATE_NIGHT = "late_night"  # 00-05

    @classmethod
    def from_hour(cls, hour: int) -> "TimeSlot":
        if 5 <= hour < 9:
            return cls.EARLY_MORNING
        if 9 <= hour < 13:
            return cls.MORNING
        if 13 <= hour < 17:
            return cls.AFTERNOON
        if 17 <= hour < 21:
            return cls.EVENING
        if 21 <= hour < 24:
            return cls.NIGHT
        return cls.LATE_NIGHT

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


# Fallback success rates / intervals for buckets without samples
DIFFICULTY_DEFAULTS: dict[Difficulty, tuple[float, float]] = {
    Difficulty.EASY: (0.8, 7.0),
    Difficulty.MEDIUM: (0.7, 5.0),
    Difficulty.HARD: (0.6, 3.0),
}


class SlotPerformance(BaseModel):
    success_rate: float = 0.5
    review_count: int = 0
    average_response_time: float = 0.0
    confidence: float = 0.0
    is_optimal: bool = False


class DifficultyPerformance(BaseModel):
    success_rate: float
    average_interval: float
    review_count: int = 0
    average_response_time: float = 0.0
    confidence: float = 0.0


class InconsistencyPatterns(BaseModel):
    card_ids: list[str] = Field(default_factory=list)
    average_variance: float = 0.0
    detection_threshold: float = INCONSISTENCY_THRESHOLD
    last_calculated: int = 0


class StagnantTopic(BaseModel):
    topic: str
    card_ids: list[str]
    improvement: float
    last_improvement: int | None = None


class PlateauDetection(BaseModel):
    stagnant_topics: list[StagnantTopic] = Field(default_factory=list)
    plateau_threshold_days: int = PLATEAU_THRESHOLD_DAYS
    last_analyzed: int = 0

    def contains_card(self, card_id: str) -> bool:
        return any(card_id in topic.card_ids for topic in self.stagnant_topics)


class PerformanceWindow(BaseModel):
    success_rate: float = 0.5
    review_count: int = 0
    average_response_time: float = 0.0
    confidence: float = 0.0


class TrendDelta(BaseModel):
    """Percentage change from the 14-day window to the 7-day window."""

    success_rate_change: float = 0.0
    response_time_change: float = 0.0
    confidence_change: float = 0.0


class PerformanceTrends(BaseModel):
    last_7_days: PerformanceWindow = Field(default_factory=PerformanceWindow)
    last_14_days: PerformanceWindow = Field(default_factory=PerformanceWindow)
    trend: TrendDelta = Field(default_factory=TrendDelta)
    last_updated: int = 0


class PersonalizationConfig(BaseModel):
    """User-tunable switches and weights for adaptive ordering."""

    learning_pattern_influence: float = Field(default=DEFAULT_PATTERN_WEIGHT, ge=0.0, le=1.0)
    prioritize_inconsistent_cards: bool = True
    focus_on_plateau_topics: bool = True
    optimize_for_time_of_day: bool = True
    adapt_difficulty_progression: bool = True
    inconsistency_boost: float = Field(default=DEFAULT_INCONSISTENCY_BOOST, ge=1.0)
    plateau_boost: float = Field(default=DEFAULT_PLATEAU_BOOST, ge=1.0)
    time_of_day_boost: float = Field(default=DEFAULT_TIME_OF_DAY_BOOST, ge=1.0)
    difficulty_adaptation: float = Field(default=DEFAULT_DIFFICULTY_ADAPTATION, ge=0.0, le=1.0)


class RetentionPoint(BaseModel):
    interval: int
    retention_rate: float


def default_slots() -> dict[TimeSlot, SlotPerformance]:
    return {slot: SlotPerformance() for slot in TimeSlot}


def default_difficulty_patterns() -> dict[Difficulty, DifficultyPerformance]:
    return {
        bucket: DifficultyPerformance(success_rate=rate, average_interval=interval)
        for bucket, (rate, interval) in DIFFICULTY_DEFAULTS.items()
    }


class LearningPattern(BaseModel):
    """
    Per-user learning pattern derived from review history.

    Recomputable at any time from the review log; RealTimeUpdater folds new
    interactions into it incrementally between full recomputations.
    """

    user_id: str
    average_success_rate: float = 0.5
    learning_velocity: float = 0.0
    personal_ease_factor_bias: float = Field(default=0.0, ge=-MAX_EASE_BIAS, le=MAX_EASE_BIAS)
    time_of_day_performance: dict[TimeSlot, SlotPerformance] = Field(
        default_factory=default_slots
    )
    difficulty_patterns: dict[Difficulty, DifficultyPerformance] = Field(
        default_factory=default_difficulty_patterns
    )
    inconsistency: InconsistencyPatterns = Field(default_factory=InconsistencyPatterns)
    plateau: PlateauDetection = Field(default_factory=PlateauDetection)
    trends: PerformanceTrends = Field(default_factory=PerformanceTrends)
    config: PersonalizationConfig = Field(default_factory=PersonalizationConfig)
    retention_curve: list[RetentionPoint] = Field(default_factory=list)
    last_updated: int = 0

    def slot(self, slot: TimeSlot) -> SlotPerformance:
        return self.time_of_day_performance.get(slot, SlotPerformance())

    def bucket(self, difficulty: Difficulty) -> DifficultyPerformance:
        if difficulty in self.difficulty_patterns:
            return self.difficulty_patterns[difficulty]
        rate, interval = DIFFICULTY_DEFAULTS[difficulty]
        return DifficultyPerformance(success_rate=rate, average_interval=interval)


class PatternResult(BaseModel):
    """Result of a pattern computation; `pattern` is None when skipped."""

    pattern: LearningPattern | None = None
    skipped_reason: str | None = None
    reviews_analyzed: int = 0

    @property
    def computed(self) -> bool:
        return self.pattern is not None
