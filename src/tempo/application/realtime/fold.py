"""
Incremental folding of interactions into a LearningPattern.

A fold blends the metrics of a small batch of new interactions into the
stored pattern instead of recomputing it from the full review log. Pure
computation, no I/O.
"""

from tempo.application.utils.stats import binary_variance, mean, percent_change, success_rate
from tempo.domain.constants import (
    BLEND_SAMPLE_DIVISOR,
    FOLD_VARIANCE_THRESHOLD,
    INCONSISTENCY_THRESHOLD,
    MAX_BLEND_WEIGHT,
    MIN_FOLD_INCONSISTENCY_ANSWERS,
    SUCCESS_RATE_CHANGE_REPORT,
    TREND_CHANGE_REPORT_PERCENT,
)
from tempo.domain.patterns.models import (
    InconsistencyPatterns,
    LearningPattern,
    PerformanceTrends,
    PerformanceWindow,
    TrendDelta,
)
from tempo.domain.realtime.models import CardInteraction, InteractionType


def blend_weight(sample_count: int) -> float:
    """Share given to new data: min(0.3, n / 20)."""
    return min(MAX_BLEND_WEIGHT, sample_count / BLEND_SAMPLE_DIVISOR)


def answered(interactions: list[CardInteraction]) -> list[CardInteraction]:
    return [
        i
        for i in interactions
        if i.interaction_type is InteractionType.ANSWER and i.quality is not None
    ]


def _blend(old: float, new: float | None, weight: float) -> float:
    if new is None:
        return old
    return (1 - weight) * old + weight * new


def _fold_trends(
    current: PerformanceTrends,
    answers: list[CardInteraction],
    new_rate: float,
    new_rt: float | None,
    new_conf: float | None,
    weight: float,
    now: int,
) -> PerformanceTrends:
    old_7 = current.last_7_days
    last_7 = PerformanceWindow(
        success_rate=_blend(old_7.success_rate, new_rate, weight),
        review_count=old_7.review_count + len(answers),
        average_response_time=_blend(old_7.average_response_time, new_rt, weight),
        confidence=_blend(old_7.confidence, new_conf, weight),
    )
    old_14 = current.last_14_days
    return PerformanceTrends(
        last_7_days=last_7,
        last_14_days=old_14,
        trend=TrendDelta(
            success_rate_change=percent_change(old_14.success_rate, last_7.success_rate),
            response_time_change=percent_change(
                old_14.average_response_time, last_7.average_response_time
            ),
            confidence_change=percent_change(old_14.confidence, last_7.confidence),
        ),
        last_updated=now,
    )


def _fold_inconsistency(
    current: InconsistencyPatterns,
    answers: list[CardInteraction],
    now: int,
) -> InconsistencyPatterns:
    """
    Flag cards whose new answers vary above 0.2 and merge with the stored set.
    """
    by_card: dict[str, list[bool]] = {}
    for interaction in answers:
        by_card.setdefault(interaction.card_id, []).append(bool(interaction.was_successful))

    variances = {}
    for card_id, results in by_card.items():
        if len(results) >= MIN_FOLD_INCONSISTENCY_ANSWERS:
            variances[card_id] = binary_variance(results)

    if not variances:
        return current

    flagged = {card_id for card_id, v in variances.items() if v > FOLD_VARIANCE_THRESHOLD}
    return InconsistencyPatterns(
        card_ids=sorted(set(current.card_ids) | flagged),
        average_variance=mean(variances.values()),
        detection_threshold=INCONSISTENCY_THRESHOLD,
        last_calculated=now,
    )


def fold_interactions(
    current: LearningPattern | None,
    user_id: str,
    interactions: list[CardInteraction],
    now: int,
) -> LearningPattern | None:
    """
    Blend a batch of interactions into the pattern.

    Args:
        current: Stored pattern, or None for a user without one.
        interactions: The batch, any order.
        now: Reference time; `last_updated` never moves below the stored value.

    Returns:
        The updated pattern, or None when the batch holds no answers.
    """
    batch = sorted(interactions, key=lambda i: (i.timestamp, i.id))
    answers = answered(batch)
    if not answers:
        return None

    new_rate = success_rate(i.was_successful for i in answers)
    timed = [float(i.response_time_ms) for i in answers if i.response_time_ms]
    new_rt = mean(timed) if timed else None
    rated = [
        i.confidence_level / 5
        for i in batch
        if i.interaction_type is InteractionType.CONFIDENCE_RATING
        and i.confidence_level is not None
    ]
    new_conf = mean(rated) if rated else None

    if current is None:
        window = PerformanceWindow(
            success_rate=new_rate,
            review_count=len(answers),
            average_response_time=new_rt or 0.0,
            confidence=new_conf or 0.0,
        )
        base = LearningPattern(user_id=user_id)
        trends = PerformanceTrends(last_7_days=window, last_14_days=window, last_updated=now)
        average = new_rate
        last_updated = now
    else:
        base = current
        weight = blend_weight(len(batch))
        trends = _fold_trends(current.trends, answers, new_rate, new_rt, new_conf, weight, now)
        previous_count = current.trends.last_7_days.review_count
        total = previous_count + len(answers)
        average = (current.average_success_rate * previous_count + new_rate * len(answers)) / total
        last_updated = max(now, current.last_updated)

    inconsistency = base.inconsistency
    if len(answers) >= MIN_FOLD_INCONSISTENCY_ANSWERS:
        inconsistency = _fold_inconsistency(base.inconsistency, answers, now)

    return base.model_copy(
        update={
            "average_success_rate": average,
            "trends": trends,
            "inconsistency": inconsistency,
            "last_updated": last_updated,
        }
    )


def significant_changes(old: LearningPattern | None, new: LearningPattern) -> list[str]:
    """Human-readable summary of what a fold changed materially."""
    if old is None:
        return ["initial_patterns_created"]

    changes = []
    delta = new.average_success_rate - old.average_success_rate
    if abs(delta) > SUCCESS_RATE_CHANGE_REPORT:
        direction = "improved" if delta > 0 else "declined"
        changes.append(f"success_rate_{direction}_by_{round(abs(delta) * 100)}%")

    known = set(old.inconsistency.card_ids)
    new_cards = [c for c in new.inconsistency.card_ids if c not in known]
    if new_cards:
        changes.append(f"new_inconsistent_cards_detected_{len(new_cards)}")

    trend = new.trends.trend.success_rate_change
    if abs(trend) > TREND_CHANGE_REPORT_PERCENT:
        changes.append(f"performance_trend_{'improving' if trend > 0 else 'declining'}")

    return changes
