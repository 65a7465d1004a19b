"""
Pattern analyzer: derives a LearningPattern from a user's review history.

This is a pure computation module with no I/O. Reviews are sorted by
(timestamp, id) before anything else, so the result does not depend on the
order the store returned them in.
"""

import logging
from collections.abc import Iterable

from tempo.application.utils.stats import (
    clamp,
    mean,
    percent_change,
    success_rate,
)
from tempo.domain.constants import (
    DEFAULT_EASE_FACTOR,
    INCONSISTENCY_MAX_WINDOW,
    INCONSISTENCY_MIN_SAMPLES,
    INCONSISTENCY_THRESHOLD,
    MASTERED_REPETITION,
    MAX_EASE_BIAS,
    MIN_REVIEWS_FOR_PATTERN,
    MIN_SLOT_SAMPLES,
    MS_PER_DAY,
    OPTIMAL_SLOT_COUNT,
    PATTERN_HISTORY_LIMIT,
    PATTERN_LOOKBACK_DAYS,
    TREND_LONG_DAYS,
    TREND_SHORT_DAYS,
)
from tempo.domain.patterns.models import (
    DIFFICULTY_DEFAULTS,
    DifficultyPerformance,
    InconsistencyPatterns,
    LearningPattern,
    PatternResult,
    PerformanceTrends,
    PerformanceWindow,
    PersonalizationConfig,
    RetentionPoint,
    SlotPerformance,
    TimeSlot,
    TrendDelta,
)
from tempo.domain.scheduling.models import Card, Difficulty, ReviewRecord

from .topics import detect_plateaus

logger = logging.getLogger(__name__)

INSUFFICIENT_DATA = "insufficient_data"


def normalized_confidence(rating: int | None) -> float | None:
    """Map a 1-5 self-rating onto 0-1."""
    if rating is None:
        return None
    return rating / 5


def _response_times(reviews: Iterable[ReviewRecord]) -> list[float]:
    return [float(r.response_time_ms) for r in reviews if r.response_time_ms]


def _confidences(reviews: Iterable[ReviewRecord]) -> list[float]:
    values = (normalized_confidence(r.confidence_rating) for r in reviews)
    return [v for v in values if v is not None]


def select_window(reviews: Iterable[ReviewRecord], now: int) -> list[ReviewRecord]:
    """Most recent reviews within the lookback, returned oldest first."""
    cutoff = now - PATTERN_LOOKBACK_DAYS * MS_PER_DAY
    recent = sorted(
        (r for r in reviews if cutoff <= r.timestamp <= now),
        key=lambda r: (r.timestamp, r.id),
    )
    return recent[-PATTERN_HISTORY_LIMIT:]


def calculate_velocity(reviews: list[ReviewRecord], now: int) -> float:
    """Reviews that reached repetition >= 3, per day spanned by the window."""
    if not reviews:
        return 0.0
    mastered = sum(1 for r in reviews if r.after.repetition >= MASTERED_REPETITION)
    days = max(1.0, (now - reviews[0].timestamp) / MS_PER_DAY)
    return mastered / days


def analyze_time_slots(reviews: list[ReviewRecord]) -> dict[TimeSlot, SlotPerformance]:
    grouped: dict[TimeSlot, list[ReviewRecord]] = {slot: [] for slot in TimeSlot}
    for review in reviews:
        grouped[TimeSlot.from_hour(review.hour_of_day)].append(review)

    eligible = [
        slot
        for slot in TimeSlot
        if len(grouped[slot]) >= MIN_SLOT_SAMPLES
    ]
    # Enum order breaks ties between equal success rates
    ranked = sorted(
        eligible,
        key=lambda slot: -success_rate(r.was_successful for r in grouped[slot]),
    )
    optimal = set(ranked[:OPTIMAL_SLOT_COUNT])

    performance = {}
    for slot, slot_reviews in grouped.items():
        performance[slot] = SlotPerformance(
            success_rate=success_rate((r.was_successful for r in slot_reviews), default=0.5),
            review_count=len(slot_reviews),
            average_response_time=mean(_response_times(slot_reviews)),
            confidence=mean(_confidences(slot_reviews)),
            is_optimal=slot in optimal,
        )
    return performance


def analyze_difficulty(reviews: list[ReviewRecord]) -> dict[Difficulty, DifficultyPerformance]:
    """Bucket reviews by the ease factor the card had before the review."""
    grouped: dict[Difficulty, list[ReviewRecord]] = {d: [] for d in Difficulty}
    for review in reviews:
        grouped[Difficulty.classify(review.before.ease_factor)].append(review)

    patterns = {}
    for bucket, bucket_reviews in grouped.items():
        default_rate, default_interval = DIFFICULTY_DEFAULTS[bucket]
        patterns[bucket] = DifficultyPerformance(
            success_rate=success_rate(
                (r.was_successful for r in bucket_reviews), default=default_rate
            ),
            average_interval=mean(
                (r.after.interval for r in bucket_reviews), default=default_interval
            ),
            review_count=len(bucket_reviews),
            average_response_time=mean(_response_times(bucket_reviews)),
            confidence=mean(_confidences(bucket_reviews)),
        )
    return patterns


def max_window_delta(outcomes: list[bool]) -> float:
    """
    Largest success-rate gap between two adjacent equal-size windows.

    The window size is min(5, n // 2); both windows slide together.
    """
    size = min(INCONSISTENCY_MAX_WINDOW, len(outcomes) // 2)
    if size == 0:
        return 0.0

    largest = 0.0
    for start in range(len(outcomes) - 2 * size + 1):
        first = success_rate(outcomes[start : start + size])
        second = success_rate(outcomes[start + size : start + 2 * size])
        largest = max(largest, abs(first - second))
    return largest


def detect_inconsistency(reviews: list[ReviewRecord], now: int) -> InconsistencyPatterns:
    by_card: dict[str, list[bool]] = {}
    for review in reviews:
        by_card.setdefault(review.card_id, []).append(review.was_successful)

    flagged: dict[str, float] = {}
    for card_id, outcomes in sorted(by_card.items()):
        if len(outcomes) < INCONSISTENCY_MIN_SAMPLES:
            continue
        delta = max_window_delta(outcomes)
        if delta > INCONSISTENCY_THRESHOLD:
            flagged[card_id] = delta

    return InconsistencyPatterns(
        card_ids=list(flagged),
        average_variance=mean(flagged.values()),
        detection_threshold=INCONSISTENCY_THRESHOLD,
        last_calculated=now,
    )


def performance_window(reviews: list[ReviewRecord], since: int) -> PerformanceWindow:
    window = [r for r in reviews if r.timestamp >= since]
    return PerformanceWindow(
        success_rate=success_rate((r.was_successful for r in window), default=0.5),
        review_count=len(window),
        average_response_time=mean(_response_times(window)),
        confidence=mean(_confidences(window)),
    )


def calculate_trends(reviews: list[ReviewRecord], now: int) -> PerformanceTrends:
    """Rolling 7- and 14-day windows and the percentage change between them."""
    short = performance_window(reviews, now - TREND_SHORT_DAYS * MS_PER_DAY)
    long = performance_window(reviews, now - TREND_LONG_DAYS * MS_PER_DAY)
    return PerformanceTrends(
        last_7_days=short,
        last_14_days=long,
        trend=TrendDelta(
            success_rate_change=percent_change(long.success_rate, short.success_rate),
            response_time_change=percent_change(
                long.average_response_time, short.average_response_time
            ),
            confidence_change=percent_change(long.confidence, short.confidence),
        ),
        last_updated=now,
    )


def retention_curve(average_success_rate: float) -> list[RetentionPoint]:
    return [
        RetentionPoint(interval=1, retention_rate=min(0.95, average_success_rate + 0.1)),
        RetentionPoint(interval=7, retention_rate=average_success_rate),
        RetentionPoint(interval=30, retention_rate=max(0.5, average_success_rate - 0.1)),
        RetentionPoint(interval=90, retention_rate=max(0.4, average_success_rate - 0.2)),
    ]


class PatternAnalyzer:
    """
    Computes a user's LearningPattern from review history.

    Stateless and side-effect free.
    """

    def compute_pattern(
        self,
        user_id: str,
        reviews: Iterable[ReviewRecord],
        cards: Iterable[Card],
        now: int,
        config: PersonalizationConfig | None = None,
    ) -> PatternResult:
        """
        Aggregate the most recent reviews into a pattern.

        Args:
            user_id: Owner of the reviews.
            reviews: Review history in any order.
            cards: The user's cards, used for topic clustering.
            now: Reference time in epoch ms.
            config: Personalization settings to carry over; defaults if None.

        Returns:
            PatternResult with `skipped_reason="insufficient_data"` when fewer
            than 20 reviews fall into the window.
        """
        window = select_window(reviews, now)
        if len(window) < MIN_REVIEWS_FOR_PATTERN:
            logger.debug(f"Skipping pattern for {user_id}: {len(window)} reviews in window")
            return PatternResult(skipped_reason=INSUFFICIENT_DATA, reviews_analyzed=len(window))

        average = success_rate(r.was_successful for r in window)
        ease_bias = clamp(
            mean(r.after.ease_factor for r in window) - DEFAULT_EASE_FACTOR,
            -MAX_EASE_BIAS,
            MAX_EASE_BIAS,
        )

        pattern = LearningPattern(
            user_id=user_id,
            average_success_rate=average,
            learning_velocity=calculate_velocity(window, now),
            personal_ease_factor_bias=ease_bias,
            time_of_day_performance=analyze_time_slots(window),
            difficulty_patterns=analyze_difficulty(window),
            inconsistency=detect_inconsistency(window, now),
            plateau=detect_plateaus(window, cards, now),
            trends=calculate_trends(window, now),
            config=config or PersonalizationConfig(),
            retention_curve=retention_curve(average),
            last_updated=now,
        )
        logger.info(
            f"Computed pattern for {user_id} from {len(window)} reviews "
            f"(success rate {average:.2f})"
        )
        return PatternResult(pattern=pattern, reviews_analyzed=len(window))
