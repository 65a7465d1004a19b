"""
Adaptive SM-2 scheduler.

This is a pure computation module with no I/O. The classic SuperMemo-2 step
is followed by an optional personalization layer driven by the user's
LearningPattern and by concept-mastery data.

Quality scale:
    0-2: failed recall (card is reset)
    3: correct with serious difficulty
    4: correct after hesitation
    5: perfect response
"""

from dataclasses import dataclass

from tempo.application.utils.clock import Clock, system_clock
from tempo.application.utils.stats import clamp, round_half_up
from tempo.domain.constants import (
    DEFAULT_CONFIDENCE,
    DIFFICULTY_EASE_STEP,
    FAST_LEARNER_MULTIPLIER,
    FAST_LEARNER_VELOCITY,
    FIRST_INTERVAL,
    MASTERED_SUCCESS_RATE,
    MASTERY_EASE_CAP,
    MASTERY_MAX_INTERVAL_MULTIPLIER,
    MASTERY_MIN_INTERVAL_MULTIPLIER,
    MAX_EASE_FACTOR,
    MAX_QUALITY,
    MIN_EASE_FACTOR,
    MIN_QUALITY,
    MIN_SLOT_SAMPLES,
    MS_PER_DAY,
    SECOND_INTERVAL,
    SLOT_BASELINE_SUCCESS,
    SLOT_EASE_WEIGHT,
    SLOW_LEARNER_MULTIPLIER,
    SLOW_LEARNER_VELOCITY,
    STRUGGLING_SUCCESS_RATE,
    SUCCESS_QUALITY,
)
from tempo.domain.exceptions import ValidationError
from tempo.domain.patterns.models import LearningPattern, TimeSlot
from tempo.domain.scheduling.models import (
    AdvanceResult,
    CardSchedulingState,
    ConceptMastery,
    Difficulty,
    DifficultyTrend,
    MasteryCategory,
    resolve_state,
)

# (ease delta, interval factor) contributed by each mastery signal
TREND_INFLUENCE: dict[DifficultyTrend, tuple[float, float]] = {
    DifficultyTrend.IMPROVING: (0.05, 1.1),
    DifficultyTrend.STABLE: (0.0, 1.0),
    DifficultyTrend.DECLINING: (-0.1, 0.85),
}

CATEGORY_INFLUENCE: dict[MasteryCategory, tuple[float, float]] = {
    MasteryCategory.BEGINNER: (-0.05, 0.9),
    MasteryCategory.INTERMEDIATE: (0.0, 1.0),
    MasteryCategory.ADVANCED: (0.05, 1.1),
    MasteryCategory.EXPERT: (0.15, 1.3),
}

HIGH_MASTERY_INFLUENCE = (0.1, 1.2)
LOW_MASTERY_INFLUENCE = (-0.05, 0.8)
HIGH_CONFIDENCE_INFLUENCE = (0.05, 1.1)
LOW_CONFIDENCE_INFLUENCE = (-0.05, 0.9)
FAST_CONCEPT_INFLUENCE = (0.05, 1.1)
SLOW_CONCEPT_INFLUENCE = (-0.05, 0.9)
PERFECT_RECALL_INFLUENCE = (0.05, 1.1)


@dataclass(frozen=True)
class MasteryInfluence:
    ease_adjustment: float
    interval_multiplier: float

    @property
    def combined(self) -> float:
        return self.ease_adjustment + (self.interval_multiplier - 1)


def validate_quality(quality: object) -> int:
    """Reject anything that is not an integer in 0..5."""
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise ValidationError(f"Quality must be an integer, got {quality!r}")
    if quality < MIN_QUALITY or quality > MAX_QUALITY:
        raise ValidationError(f"Quality must be between 0 and 5, got {quality}")
    return quality


def sm2_step(quality: int, state: CardSchedulingState) -> tuple[int, float, int]:
    """
    Classic SM-2 transition.

    Returns:
        (repetition, ease_factor, interval). The ease factor is floored at
        1.3 but not capped here.
    """
    if quality < SUCCESS_QUALITY:
        # Failed review: reset progress, keep ease untouched
        return 0, state.ease_factor, FIRST_INTERVAL

    repetition = state.repetition + 1
    if repetition == 1:
        interval = FIRST_INTERVAL
    elif repetition == 2:
        interval = SECOND_INTERVAL
    else:
        interval = round_half_up(state.interval * state.ease_factor)

    lapse = MAX_QUALITY - quality
    ease = state.ease_factor + (0.1 - lapse * (0.08 + lapse * 0.02))
    return repetition, max(MIN_EASE_FACTOR, ease), interval


def personalize_ease(
    ease_factor: float,
    pattern: LearningPattern,
    slot: TimeSlot,
    difficulty: Difficulty,
) -> float:
    """Apply personal bias, time-of-day and difficulty-bucket adjustments."""
    adjusted = ease_factor + pattern.personal_ease_factor_bias

    slot_perf = pattern.slot(slot)
    if slot_perf.review_count >= MIN_SLOT_SAMPLES:
        adjusted += (slot_perf.success_rate - SLOT_BASELINE_SUCCESS) * SLOT_EASE_WEIGHT

    bucket = pattern.bucket(difficulty)
    if bucket.success_rate < STRUGGLING_SUCCESS_RATE:
        adjusted -= DIFFICULTY_EASE_STEP
    elif bucket.success_rate > MASTERED_SUCCESS_RATE:
        adjusted += DIFFICULTY_EASE_STEP

    return clamp(adjusted, MIN_EASE_FACTOR, MAX_EASE_FACTOR)


def mastery_influence(
    mastery: ConceptMastery,
    quality: int,
    user_velocity: float | None = None,
) -> MasteryInfluence:
    """
    Combine concept-mastery signals into one ease delta and interval factor.

    Each signal contributes an additive ease delta and a multiplicative
    interval factor; the totals are clamped to +-0.3 and [0.5, 2.0].
    """
    contributions: list[tuple[float, float]] = []

    if mastery.mastery_level >= 0.8:
        contributions.append(HIGH_MASTERY_INFLUENCE)
    elif mastery.mastery_level <= 0.3:
        contributions.append(LOW_MASTERY_INFLUENCE)

    if mastery.confidence_level >= 0.8:
        contributions.append(HIGH_CONFIDENCE_INFLUENCE)
    elif mastery.confidence_level <= 0.3:
        contributions.append(LOW_CONFIDENCE_INFLUENCE)

    if user_velocity is not None and user_velocity > 0:
        ratio = mastery.learning_velocity / user_velocity
        if ratio > FAST_LEARNER_VELOCITY:
            contributions.append(FAST_CONCEPT_INFLUENCE)
        elif ratio < SLOW_LEARNER_VELOCITY:
            contributions.append(SLOW_CONCEPT_INFLUENCE)

    contributions.append(TREND_INFLUENCE[mastery.difficulty_trend])
    contributions.append(CATEGORY_INFLUENCE[mastery.mastery_category])

    if quality == MAX_QUALITY and mastery.mastery_level > 0.7:
        contributions.append(PERFECT_RECALL_INFLUENCE)

    ease_adjustment = 0.0
    multiplier = 1.0
    for ease_delta, factor in contributions:
        ease_adjustment += ease_delta
        multiplier *= factor

    return MasteryInfluence(
        ease_adjustment=clamp(ease_adjustment, -MASTERY_EASE_CAP, MASTERY_EASE_CAP),
        interval_multiplier=clamp(
            multiplier, MASTERY_MIN_INTERVAL_MULTIPLIER, MASTERY_MAX_INTERVAL_MULTIPLIER
        ),
    )


class Sm2Scheduler:
    """
    Computes the next scheduling state of a card.

    Stateless apart from the injected clock.
    """

    def __init__(self, clock: Clock = system_clock):
        self._clock = clock

    def advance(
        self,
        quality: int,
        state: CardSchedulingState | None,
        pattern: LearningPattern | None = None,
        concept_mastery: ConceptMastery | None = None,
        hour_of_day: int = 12,
    ) -> AdvanceResult:
        """
        Advance a card by one review.

        Args:
            quality: Recall quality, 0-5.
            state: Current scheduling state; None for a never-scheduled card.
            pattern: The user's learning pattern, if one exists.
            concept_mastery: Mastery of the card's dominant concept, if known.
            hour_of_day: Local hour of the review, used for time-slot data.

        Raises:
            ValidationError: quality is not an integer in 0..5.
        """
        quality = validate_quality(quality)
        now = self._clock()
        current = resolve_state(state, now)
        successful = quality >= SUCCESS_QUALITY

        repetition, ease, interval = sm2_step(quality, current)
        slot = TimeSlot.from_hour(hour_of_day)

        if pattern is not None and successful:
            # Bucket by the pre-review ease so the outcome does not reclassify the card
            difficulty = Difficulty.classify(current.ease_factor)
            ease = personalize_ease(ease, pattern, slot, difficulty)

        mastery_adjustment = 0.0
        if concept_mastery is not None:
            if successful:
                influence = mastery_influence(
                    concept_mastery,
                    quality,
                    user_velocity=pattern.learning_velocity if pattern else None,
                )
                ease = clamp(ease + influence.ease_adjustment, MIN_EASE_FACTOR, MAX_EASE_FACTOR)
                interval = max(1, round_half_up(interval * influence.interval_multiplier))
                mastery_adjustment = influence.combined
        elif pattern is not None:
            if pattern.learning_velocity > FAST_LEARNER_VELOCITY:
                interval = round_half_up(interval * FAST_LEARNER_MULTIPLIER)
            elif pattern.learning_velocity < SLOW_LEARNER_VELOCITY:
                interval = max(1, round_half_up(interval * SLOW_LEARNER_MULTIPLIER))

        confidence = DEFAULT_CONFIDENCE
        if pattern is not None and pattern.slot(slot).review_count >= MIN_SLOT_SAMPLES:
            confidence = pattern.slot(slot).success_rate
        elif concept_mastery is not None:
            confidence = concept_mastery.confidence_level

        new_state = CardSchedulingState(
            repetition=repetition,
            ease_factor=clamp(ease, MIN_EASE_FACTOR, MAX_EASE_FACTOR),
            interval=interval,
            due_date=now + interval * MS_PER_DAY,
        )
        return AdvanceResult(
            state=new_state,
            confidence=confidence,
            mastery_adjustment=mastery_adjustment,
        )
