import pytest

from helpers import NOW, USER
from tempo.application.realtime.fold import (
    blend_weight,
    fold_interactions,
    significant_changes,
)
from tempo.domain.patterns.models import (
    InconsistencyPatterns,
    LearningPattern,
    PerformanceTrends,
    PerformanceWindow,
)
from tempo.domain.realtime.models import CardInteraction, InteractionType


def _interaction(n, card_id="c1", kind=InteractionType.ANSWER, quality=5, **kwargs):
    return CardInteraction(
        id=f"int_{n:03d}",
        user_id=USER,
        card_id=card_id,
        deck_id="deck_1",
        interaction_type=kind,
        timestamp=NOW - 1000 + n,
        quality=quality if kind is InteractionType.ANSWER else None,
        **kwargs,
    )


def _baseline(**kwargs):
    window = PerformanceWindow(success_rate=0.5, review_count=10, average_response_time=3000)
    return LearningPattern(
        user_id=USER,
        average_success_rate=0.5,
        trends=PerformanceTrends(last_7_days=window, last_14_days=window),
        last_updated=NOW - 60_000,
        **kwargs,
    )


@pytest.mark.parametrize("count,expected", [(1, 0.05), (4, 0.2), (6, 0.3), (50, 0.3)])
def test_blend_weight(count, expected):
    assert blend_weight(count) == pytest.approx(expected)


def test_first_fold_creates_pattern():
    batch = [_interaction(i, response_time_ms=2000) for i in range(3)]

    pattern = fold_interactions(None, USER, batch, NOW)

    assert pattern.user_id == USER
    assert pattern.average_success_rate == 1.0
    assert pattern.trends.last_7_days.review_count == 3
    assert pattern.trends.last_7_days.average_response_time == 2000
    assert pattern.last_updated == NOW
    assert significant_changes(None, pattern) == ["initial_patterns_created"]


def test_batch_without_answers_changes_nothing():
    batch = [_interaction(1, kind=InteractionType.FLIP)]
    assert fold_interactions(_baseline(), USER, batch, NOW) is None


def test_fold_blends_into_existing_pattern():
    current = _baseline()
    batch = [_interaction(i, response_time_ms=1000) for i in range(4)]

    updated = fold_interactions(current, USER, batch, NOW)

    last_7 = updated.trends.last_7_days
    assert last_7.success_rate == pytest.approx(0.6)
    assert last_7.review_count == 14
    assert last_7.average_response_time == pytest.approx(0.8 * 3000 + 0.2 * 1000)
    assert updated.trends.last_14_days == current.trends.last_14_days
    assert updated.trends.trend.success_rate_change == pytest.approx(20.0)
    assert updated.average_success_rate == pytest.approx(9 / 14)
    assert updated.last_updated == NOW
    assert significant_changes(current, updated) == [
        "success_rate_improved_by_14%",
        "performance_trend_improving",
    ]


def test_confidence_ratings_feed_confidence():
    batch = [
        _interaction(1),
        _interaction(2, kind=InteractionType.CONFIDENCE_RATING, confidence_level=4),
    ]

    updated = fold_interactions(_baseline(), USER, batch, NOW)

    # weight = 2 / 20
    assert updated.trends.last_7_days.confidence == pytest.approx(0.1 * 0.8)


def test_fold_flags_inconsistent_answers():
    current = _baseline(inconsistency=InconsistencyPatterns(card_ids=["old"]))
    batch = [
        _interaction(1, card_id="c1", quality=5),
        _interaction(2, card_id="c1", quality=1),
        _interaction(3, card_id="c1", quality=5),
        _interaction(4, card_id="c2", quality=5),
    ]

    updated = fold_interactions(current, USER, batch, NOW)

    assert updated.inconsistency.card_ids == ["c1", "old"]
    assert updated.inconsistency.average_variance == pytest.approx(2 / 9)
    assert "new_inconsistent_cards_detected_1" in significant_changes(current, updated)


def test_last_updated_never_moves_back():
    current = _baseline().model_copy(update={"last_updated": NOW + 5000})
    updated = fold_interactions(current, USER, [_interaction(1)], NOW)
    assert updated.last_updated == NOW + 5000


def test_fold_is_order_independent():
    batch = [
        _interaction(i, quality=[5, 1, 4, 2][i % 4], response_time_ms=1000 + i) for i in range(8)
    ]

    forward = fold_interactions(_baseline(), USER, batch, NOW)
    backward = fold_interactions(_baseline(), USER, list(reversed(batch)), NOW)

    assert forward == backward


def test_small_changes_are_not_reported():
    current = _baseline()
    updated = current.model_copy(update={"average_success_rate": 0.55})
    assert significant_changes(current, updated) == []
