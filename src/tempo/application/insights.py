"""
Learning insights: actionable recommendations derived from a user's
LearningPattern and concept mastery.
"""

from dataclasses import dataclass, field
from enum import Enum

from tempo.application.utils.stats import clamp, round_half_up
from tempo.domain.constants import (
    MIN_SLOT_SAMPLES,
    SLOW_LEARNER_VELOCITY,
    STRUGGLING_SUCCESS_RATE,
)
from tempo.domain.patterns.models import LearningPattern, TimeSlot
from tempo.domain.scheduling.models import ConceptMastery, Difficulty

DEFAULT_STUDY_LOAD = 20


class RecommendationPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class Recommendation:
    type: str
    title: str
    description: str
    priority: RecommendationPriority
    actionable: bool = True


@dataclass(frozen=True)
class LearningInsights:
    recommendations: list[Recommendation] = field(default_factory=list)
    optimal_study_load: int = DEFAULT_STUDY_LOAD
    best_time_slot: TimeSlot | None = None


def optimal_study_load(learning_velocity: float) -> int:
    """Recommended cards per day, between 10 and 50."""
    return int(clamp(round_half_up(learning_velocity * 20), 10, 50))


def best_time_slot(pattern: LearningPattern) -> TimeSlot | None:
    eligible = [
        (slot, perf)
        for slot, perf in pattern.time_of_day_performance.items()
        if perf.review_count >= MIN_SLOT_SAMPLES
    ]
    if not eligible:
        return None
    # Enum order breaks ties
    order = list(TimeSlot)
    return min(eligible, key=lambda item: (-item[1].success_rate, order.index(item[0])))[0]


def build_insights(
    pattern: LearningPattern | None,
    masteries: dict[str, ConceptMastery] | None = None,
) -> LearningInsights:
    if pattern is None:
        return LearningInsights(
            recommendations=[
                Recommendation(
                    type="initialization",
                    title="Start Building Your Learning Profile",
                    description=(
                        "Complete a few card reviews to begin personalizing "
                        "your study experience."
                    ),
                    priority=RecommendationPriority.HIGH,
                )
            ]
        )

    recommendations = []

    slot = best_time_slot(pattern)
    if slot is not None:
        rate = pattern.slot(slot).success_rate
        recommendations.append(
            Recommendation(
                type="time_optimization",
                title="Optimize Your Study Time",
                description=(
                    f"Your best performance is during {slot.label} "
                    f"with {round_half_up(rate * 100)}% success rate."
                ),
                priority=RecommendationPriority.HIGH,
            )
        )

    hard_rate = pattern.bucket(Difficulty.HARD).success_rate
    if hard_rate < STRUGGLING_SUCCESS_RATE:
        recommendations.append(
            Recommendation(
                type="difficulty_management",
                title="Focus on Difficult Cards",
                description=(
                    f"Your success rate with difficult cards is {round_half_up(hard_rate * 100)}%. "
                    "Consider shorter intervals or additional review techniques."
                ),
                priority=RecommendationPriority.MEDIUM,
            )
        )

    if pattern.learning_velocity < SLOW_LEARNER_VELOCITY:
        recommendations.append(
            Recommendation(
                type="velocity_improvement",
                title="Increase Study Frequency",
                description=(
                    "Your learning velocity is below optimal. "
                    "Consider shorter, more frequent study sessions."
                ),
                priority=RecommendationPriority.MEDIUM,
            )
        )

    inconsistent = len(pattern.inconsistency.card_ids)
    if inconsistent:
        recommendations.append(
            Recommendation(
                type="inconsistency",
                title="Focus on Inconsistent Cards",
                description=(
                    f"You have {inconsistent} cards with inconsistent performance. "
                    "Reviewing these can improve overall retention."
                ),
                priority=RecommendationPriority.HIGH,
            )
        )

    stagnant = len(pattern.plateau.stagnant_topics)
    if stagnant:
        recommendations.append(
            Recommendation(
                type="plateau",
                title="Break Through Learning Plateaus",
                description=(
                    f"{stagnant} topics show stagnant progress. "
                    "Try different study approaches or take a short break."
                ),
                priority=RecommendationPriority.MEDIUM,
            )
        )

    if masteries:
        weak = sorted(
            (m for m in masteries.values() if m.mastery_level < 0.5 and m.review_count > 3),
            key=lambda m: (m.mastery_level, m.concept_id),
        )
        if weak:
            recommendations.append(
                Recommendation(
                    type="concept_focus",
                    title="Target Weak Concepts",
                    description=(
                        f'Focus on concepts like "{weak[0].concept_id}" '
                        "where your mastery is below 50%."
                    ),
                    priority=RecommendationPriority.MEDIUM,
                )
            )
        mastered = sum(1 for m in masteries.values() if m.mastery_level > 0.9)
        if mastered:
            recommendations.append(
                Recommendation(
                    type="mastery_maintenance",
                    title="Maintain Your Mastery",
                    description=(
                        f"You've mastered {mastered} concepts! "
                        "Schedule periodic reviews to maintain retention."
                    ),
                    priority=RecommendationPriority.LOW,
                )
            )

    return LearningInsights(
        recommendations=recommendations,
        optimal_study_load=optimal_study_load(pattern.learning_velocity),
        best_time_slot=slot,
    )
