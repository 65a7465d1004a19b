"""
Concept mastery tracking.

Cards are grouped into concepts by keyword; each concept gets a mastery
level, a confidence level and a learning velocity computed from the reviews
of its cards. Pure computation, no I/O.
"""

import re
from collections.abc import Iterable

from tempo.application.utils.stats import binary_variance, clamp, mean, success_rate
from tempo.domain.constants import (
    MASTERY_LOOKBACK_DAYS,
    MASTERY_TREND_DELTA,
    MASTERY_TREND_WINDOW,
    MAX_CONCEPTS_PER_CARD,
    MIN_REVIEWS_FOR_MASTERY,
    MS_PER_DAY,
)
from tempo.domain.scheduling.models import (
    Card,
    ConceptMastery,
    DifficultyTrend,
    MasteryCategory,
    ReviewRecord,
)

STOP_WORDS = frozenset(
    {
        "this", "that", "with", "have", "will", "from", "they", "been",
        "were", "said", "each", "which", "their", "time", "would", "there",
        "could", "other", "more", "very", "what", "know", "just", "first",
        "into", "over", "think", "also", "your", "work", "life", "only",
        "still", "should", "after", "being", "made", "before", "here",
        "through", "when", "where", "much", "some", "these", "many", "then",
        "them", "well",
    }
)  # fmt: skip

_NON_WORD = re.compile(r"[^\w\s]")


def extract_concepts(text: str, limit: int = MAX_CONCEPTS_PER_CARD) -> list[str]:
    """
    Keywords of a card's text, in order of appearance.

    Words of more than three characters that are not stop words; duplicates
    are kept only once.
    """
    words = _NON_WORD.sub(" ", text.lower()).split()
    concepts: list[str] = []
    for word in words:
        if len(word) > 3 and word not in STOP_WORDS and word not in concepts:
            concepts.append(word)
    return concepts[:limit]


def card_concepts(card: Card) -> list[str]:
    return extract_concepts(f"{card.front} {card.back}")


def detect_trend(newest_first: list[ReviewRecord]) -> DifficultyTrend:
    """Compare the latest reviews against everything older."""
    recent = newest_first[:MASTERY_TREND_WINDOW]
    older = newest_first[MASTERY_TREND_WINDOW:]
    recent_rate = success_rate((r.was_successful for r in recent), default=0.0)
    older_rate = success_rate((r.was_successful for r in older), default=0.0)

    if recent_rate > older_rate + MASTERY_TREND_DELTA:
        return DifficultyTrend.IMPROVING
    if recent_rate < older_rate - MASTERY_TREND_DELTA:
        return DifficultyTrend.DECLINING
    return DifficultyTrend.STABLE


def calculate_mastery_level(
    rate: float,
    review_count: int,
    average_response_time: float | None,
    trend: DifficultyTrend,
) -> float:
    """
    Mastery on a 0-1 scale.

    Starts from the success rate, rewards fast answers, follows the trend and
    discounts small samples. Zero below five reviews.
    """
    if review_count < MIN_REVIEWS_FOR_MASTERY:
        return 0.0

    mastery = rate
    if average_response_time is not None:
        mastery *= clamp(5000 / max(average_response_time, 1000), 0.5, 1.2)

    if trend is DifficultyTrend.IMPROVING:
        mastery *= 1.1
    elif trend is DifficultyTrend.DECLINING:
        mastery *= 0.9

    reliability = min(1.0, review_count / 20)
    mastery *= 0.7 + 0.3 * reliability
    return clamp(mastery, 0.0, 1.0)


def _concept_mastery(concept: str, reviews: list[ReviewRecord], now: int) -> ConceptMastery:
    newest_first = sorted(reviews, key=lambda r: (-r.timestamp, r.id))
    rate = success_rate(r.was_successful for r in newest_first)
    timed = [r.response_time_ms for r in newest_first if r.response_time_ms]
    average_rt = mean(timed) if timed else None

    trend = detect_trend(newest_first)
    level = calculate_mastery_level(rate, len(newest_first), average_rt, trend)
    confidence = max(0.0, 1 - binary_variance(r.was_successful for r in newest_first))

    oldest = newest_first[-1].timestamp
    span_days = max(1.0, (now - oldest) / MS_PER_DAY)

    return ConceptMastery(
        concept_id=concept,
        mastery_level=level,
        confidence_level=confidence,
        learning_velocity=level / span_days,
        difficulty_trend=trend,
        mastery_category=MasteryCategory.from_level(level),
        review_count=len(newest_first),
        success_rate=rate,
        average_response_time=average_rt or 0.0,
        last_reviewed=newest_first[0].timestamp,
    )


def build_concept_masteries(
    cards: Iterable[Card],
    reviews: Iterable[ReviewRecord],
    now: int,
) -> dict[str, ConceptMastery]:
    """
    Mastery of every concept with at least five reviews in the last 30 days.

    A review counts towards every concept of its card.
    """
    cutoff = now - MASTERY_LOOKBACK_DAYS * MS_PER_DAY
    by_card: dict[str, list[ReviewRecord]] = {}
    for review in reviews:
        if review.timestamp >= cutoff:
            by_card.setdefault(review.card_id, []).append(review)

    groups: dict[str, list[ReviewRecord]] = {}
    for card in cards:
        for concept in card_concepts(card):
            groups.setdefault(concept, []).extend(by_card.get(card.id, []))

    return {
        concept: _concept_mastery(concept, group, now)
        for concept, group in sorted(groups.items())
        if len(group) >= MIN_REVIEWS_FOR_MASTERY
    }


def mastery_for_card(
    card: Card, masteries: dict[str, ConceptMastery]
) -> ConceptMastery | None:
    """
    The card's strongest tracked concept, or None if none is tracked.

    Ties go to the concept that appears first in the card text.
    """
    candidates = [masteries[c] for c in card_concepts(card) if c in masteries]
    if not candidates:
        return None
    return max(candidates, key=lambda m: (m.mastery_level, m.review_count))
