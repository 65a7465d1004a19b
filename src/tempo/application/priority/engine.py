"""
Priority engine for ordering the study queue.

Blends a traditional urgency score with learning-pattern boosts:

    final = traditional * srs_weight + personalized * learning_pattern_weight

where `personalized` is the traditional score multiplied by every boost
that applies to the card. Without a pattern the traditional score is used
as is.
"""

from collections.abc import Iterable

from tempo.application.utils.clock import hour_of_day
from tempo.application.utils.stats import success_rate
from tempo.domain.constants import (
    DECLINE_BOOST,
    DECLINE_TREND_PERCENT,
    DEFAULT_EASE_FACTOR,
    EASE_DEFICIT_SPAN,
    EASE_DEFICIT_WEIGHT,
    IMPROVE_DAMPEN,
    IMPROVE_TREND_PERCENT,
    MIN_SLOT_SAMPLES,
    MS_PER_DAY,
    NEWNESS_REPETITIONS,
    NEWNESS_WEIGHT,
    OVERDUE_CAP_DAYS,
    OVERDUE_WEIGHT,
    RECENT_FAILURE_WEIGHT,
    RECENT_REVIEW_WINDOW,
    STRUGGLING_SUCCESS_RATE,
)
from tempo.domain.patterns.models import LearningPattern, TimeSlot
from tempo.domain.priority.models import CardPriority, PriorityResult, PriorityWeights
from tempo.domain.scheduling.models import Card, Difficulty, ReviewRecord, resolve_state


class PriorityEngine:
    """
    Scores and ranks cards. Stateless apart from the timezone used to find
    the current time slot.
    """

    def __init__(self, timezone: str = "UTC"):
        self._timezone = timezone

    def traditional_score(
        self, card: Card, recent_reviews: Iterable[ReviewRecord], now: int
    ) -> tuple[float, list[str]]:
        """
        SM-2 urgency in [0, 1] and the reasoning fragments behind it.
        """
        state = resolve_state(card.scheduling, now)

        days_overdue = max(0.0, (now - state.due_date) / MS_PER_DAY)
        overdue = min(days_overdue, OVERDUE_CAP_DAYS) / OVERDUE_CAP_DAYS
        ease_deficit = max(0.0, (DEFAULT_EASE_FACTOR - state.ease_factor) / EASE_DEFICIT_SPAN)
        newness = max(0.0, (NEWNESS_REPETITIONS - state.repetition) / NEWNESS_REPETITIONS)

        latest = sorted(recent_reviews, key=lambda r: (r.timestamp, r.id))[-RECENT_REVIEW_WINDOW:]
        # No history means no evidence of failure
        recent_rate = success_rate((r.was_successful for r in latest), default=1.0)

        score = (
            overdue * OVERDUE_WEIGHT
            + ease_deficit * EASE_DEFICIT_WEIGHT
            + newness * NEWNESS_WEIGHT
            + (1 - recent_rate) * RECENT_FAILURE_WEIGHT
        )

        reasons = []
        if days_overdue > 0:
            reasons.append(f"{days_overdue:.1f} days overdue")
        if ease_deficit > 0:
            reasons.append(f"low ease {state.ease_factor:.2f}")
        if card.is_new:
            reasons.append("new card")
        if latest and recent_rate < 1.0:
            reasons.append(f"recent success {recent_rate:.0%}")
        return score, reasons

    def boosts(
        self,
        card: Card,
        pattern: LearningPattern,
        weights: PriorityWeights,
        now: int,
    ) -> list[tuple[str, float]]:
        """Named multiplicative boosts that apply to this card."""
        applied: list[tuple[str, float]] = []

        if weights.inconsistency_boost > 1.0 and card.id in pattern.inconsistency.card_ids:
            applied.append(("inconsistent", weights.inconsistency_boost))

        if weights.plateau_boost > 1.0 and pattern.plateau.contains_card(card.id):
            applied.append(("plateau_topic", weights.plateau_boost))

        slot = pattern.slot(TimeSlot.from_hour(hour_of_day(now, self._timezone)))
        if (
            weights.time_of_day_boost > 1.0
            and slot.is_optimal
            and slot.review_count >= MIN_SLOT_SAMPLES
        ):
            applied.append(("optimal_time", weights.time_of_day_boost))

        if weights.difficulty_adaptation > 0.0:
            ease = resolve_state(card.scheduling, now).ease_factor
            bucket = pattern.bucket(Difficulty.classify(ease))
            if bucket.success_rate < STRUGGLING_SUCCESS_RATE:
                applied.append(("struggling_difficulty", 1 + weights.difficulty_adaptation))

        change = pattern.trends.trend.success_rate_change
        if change < DECLINE_TREND_PERCENT:
            applied.append(("declining_trend", DECLINE_BOOST))
        elif change > IMPROVE_TREND_PERCENT:
            applied.append(("improving_trend", IMPROVE_DAMPEN))

        return applied

    def score(
        self,
        card: Card,
        recent_reviews: Iterable[ReviewRecord],
        pattern: LearningPattern | None,
        weights: PriorityWeights | None,
        now: int,
    ) -> PriorityResult:
        """
        Priority of a single card.

        Args:
            card: The card to score.
            recent_reviews: Reviews of this card, any order.
            pattern: The user's learning pattern, if one exists.
            weights: Blend weights; derived from the pattern's config if None.
            now: Reference time in epoch ms.
        """
        traditional, reasons = self.traditional_score(card, recent_reviews, now)
        if pattern is None:
            return PriorityResult(
                score=traditional,
                applied_boosts=[],
                reasoning=_reasoning(reasons, []),
            )

        if weights is None:
            weights = PriorityWeights.from_config(pattern.config)

        applied = self.boosts(card, pattern, weights, now)
        personalized = traditional
        for _, factor in applied:
            personalized *= factor

        final = traditional * weights.srs_weight + personalized * weights.learning_pattern_weight
        return PriorityResult(
            score=final,
            applied_boosts=[name for name, _ in applied],
            reasoning=_reasoning(reasons, applied),
        )

    def rank(
        self,
        cards: Iterable[Card],
        reviews: Iterable[ReviewRecord],
        pattern: LearningPattern | None,
        weights: PriorityWeights | None,
        now: int,
    ) -> list[CardPriority]:
        """
        Cards sorted by score descending, ties by due date ascending.

        The sort is stable, so cards equal on both keep their input order.
        """
        by_card: dict[str, list[ReviewRecord]] = {}
        for review in reviews:
            by_card.setdefault(review.card_id, []).append(review)

        ranked = []
        for card in cards:
            result = self.score(card, by_card.get(card.id, []), pattern, weights, now)
            ranked.append(
                CardPriority(
                    card_id=card.id,
                    score=result.score,
                    boosts=result.applied_boosts,
                    reasoning=result.reasoning,
                    due_date=resolve_state(card.scheduling, now).due_date,
                )
            )

        ranked.sort(key=lambda p: (-p.score, p.due_date))
        return ranked


def _reasoning(reasons: list[str], applied: list[tuple[str, float]]) -> str:
    parts = list(reasons)
    parts.extend(f"{name} x{factor:.2f}" for name, factor in applied)
    return ", ".join(parts) if parts else "scheduled review"
