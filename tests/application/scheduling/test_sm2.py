import pytest

from helpers import NOW
from tempo.application.scheduling.sm2 import (
    Sm2Scheduler,
    mastery_influence,
    personalize_ease,
    sm2_step,
    validate_quality,
)
from tempo.application.utils.clock import fixed_clock
from tempo.domain.constants import MS_PER_DAY
from tempo.domain.exceptions import ValidationError
from tempo.domain.patterns.models import LearningPattern, SlotPerformance, TimeSlot
from tempo.domain.scheduling.models import (
    CardSchedulingState,
    ConceptMastery,
    Difficulty,
    DifficultyTrend,
    MasteryCategory,
)


@pytest.fixture
def scheduler():
    return Sm2Scheduler(clock=fixed_clock(NOW))


def _mastery(level, confidence, velocity=1.0, trend=DifficultyTrend.STABLE, category=None):
    return ConceptMastery(
        concept_id="photosynthesis",
        mastery_level=level,
        confidence_level=confidence,
        learning_velocity=velocity,
        difficulty_trend=trend,
        mastery_category=category or MasteryCategory.from_level(level),
        review_count=10,
    )


def test_perfect_recall_on_third_repetition(scheduler):
    state = CardSchedulingState(repetition=2, ease_factor=2.5, interval=6, due_date=NOW)

    result = scheduler.advance(5, state)

    assert result.state.repetition == 3
    assert result.state.interval == 15
    assert result.state.ease_factor == pytest.approx(2.6)
    assert result.state.due_date == NOW + 15 * MS_PER_DAY
    assert result.confidence == 0.5


def test_failed_recall_resets_progress(scheduler):
    state = CardSchedulingState(repetition=4, ease_factor=2.0, interval=20, due_date=NOW)

    result = scheduler.advance(2, state)

    assert result.state.repetition == 0
    assert result.state.interval == 1
    assert result.state.ease_factor == 2.0
    assert result.state.due_date == NOW + MS_PER_DAY


def test_new_card_gets_initial_state(scheduler):
    result = scheduler.advance(4, None)

    assert result.state.repetition == 1
    assert result.state.interval == 1
    assert result.state.ease_factor == pytest.approx(2.5)
    assert result.state.due_date == NOW + MS_PER_DAY


def test_second_repetition_interval_is_six(scheduler):
    state = CardSchedulingState(repetition=1, ease_factor=2.5, interval=1)
    assert scheduler.advance(4, state).state.interval == 6


@pytest.mark.parametrize(
    "quality,expected_delta",
    [(3, -0.14), (4, 0.0), (5, 0.1)],
)
def test_ease_delta_by_quality(quality, expected_delta):
    state = CardSchedulingState(repetition=3, ease_factor=2.5, interval=10)
    _, ease, _ = sm2_step(quality, state)
    assert ease == pytest.approx(2.5 + expected_delta)


def test_ease_floor_and_cap(scheduler):
    low = scheduler.advance(3, CardSchedulingState(repetition=3, ease_factor=1.3, interval=4))
    high = scheduler.advance(5, CardSchedulingState(repetition=3, ease_factor=3.0, interval=4))

    assert low.state.ease_factor == 1.3
    assert high.state.ease_factor == 3.0


def test_broken_state_is_repaired(scheduler):
    state = CardSchedulingState(repetition=-2, ease_factor=2.5, interval=0)
    result = scheduler.advance(4, state)
    assert result.state.repetition == 1
    assert result.state.interval == 1


@pytest.mark.parametrize("quality", [-1, 6, 3.5, True, "4", None])
def test_invalid_quality_rejected(scheduler, quality):
    with pytest.raises(ValidationError):
        scheduler.advance(quality, None)


def test_validate_quality_accepts_range():
    assert [validate_quality(q) for q in range(6)] == list(range(6))


@pytest.mark.parametrize("quality", range(6))
@pytest.mark.parametrize("ease", [1.3, 1.7, 2.5, 3.0])
@pytest.mark.parametrize("velocity", [0.0, 1.0, 3.0])
def test_state_bounds_hold_with_personalization(quality, ease, velocity):
    pattern = LearningPattern(
        user_id="u",
        learning_velocity=velocity,
        personal_ease_factor_bias=0.5,
        time_of_day_performance={
            TimeSlot.MORNING: SlotPerformance(success_rate=1.0, review_count=20)
        },
    )
    mastery = _mastery(0.99, 0.99, velocity=5.0, trend=DifficultyTrend.IMPROVING)
    state = CardSchedulingState(repetition=5, ease_factor=ease, interval=30)

    result = Sm2Scheduler(clock=fixed_clock(NOW)).advance(
        quality, state, pattern=pattern, concept_mastery=mastery, hour_of_day=10
    )

    assert 1.3 <= result.state.ease_factor <= 3.0
    assert result.state.interval >= 1
    assert result.state.due_date == NOW + result.state.interval * MS_PER_DAY
    if quality < 3:
        assert result.state.repetition == 0
    else:
        assert result.state.repetition == 6


def test_pattern_personalizes_successful_review(scheduler):
    pattern = LearningPattern(
        user_id="u",
        learning_velocity=0.0,
        personal_ease_factor_bias=0.2,
        time_of_day_performance={
            TimeSlot.MORNING: SlotPerformance(success_rate=1.0, review_count=10)
        },
    )
    state = CardSchedulingState(repetition=2, ease_factor=2.5, interval=6)

    result = scheduler.advance(4, state, pattern=pattern, hour_of_day=10)

    # 2.5 + bias 0.2 + slot (1.0 - 0.75) * 0.2
    assert result.state.ease_factor == pytest.approx(2.75)
    # slow learner: 15 * 0.9 = 13.5 rounds half up
    assert result.state.interval == 14
    assert result.confidence == 1.0


def test_pattern_does_not_personalize_failure(scheduler):
    pattern = LearningPattern(user_id="u", learning_velocity=2.0, personal_ease_factor_bias=0.5)
    state = CardSchedulingState(repetition=3, ease_factor=2.0, interval=10)

    result = scheduler.advance(1, state, pattern=pattern)

    assert result.state.ease_factor == 2.0
    assert result.state.interval == 1


def test_fast_learner_stretches_interval(scheduler):
    pattern = LearningPattern(user_id="u", learning_velocity=2.0)
    state = CardSchedulingState(repetition=2, ease_factor=2.5, interval=6)

    result = scheduler.advance(4, state, pattern=pattern, hour_of_day=10)

    assert result.state.interval == 17  # 15 * 1.1 = 16.5


def test_personalize_ease_struggling_bucket():
    pattern = LearningPattern(user_id="u")
    pattern.difficulty_patterns[Difficulty.HARD].success_rate = 0.4
    ease = personalize_ease(1.6, pattern, TimeSlot.EVENING, Difficulty.HARD)
    assert ease == pytest.approx(1.5)


def test_strong_mastery_is_capped(scheduler):
    mastery = _mastery(0.96, 0.9, trend=DifficultyTrend.IMPROVING)
    state = CardSchedulingState(repetition=2, ease_factor=2.5, interval=6)

    result = scheduler.advance(5, state, concept_mastery=mastery)

    assert result.state.ease_factor == pytest.approx(2.9)
    assert result.state.interval == 30
    assert result.mastery_adjustment == pytest.approx(1.3)
    assert result.confidence == 0.9


def test_weak_mastery_shortens_interval(scheduler):
    mastery = _mastery(0.2, 0.2, trend=DifficultyTrend.DECLINING)
    state = CardSchedulingState(repetition=2, ease_factor=2.5, interval=6)

    result = scheduler.advance(3, state, concept_mastery=mastery)

    assert result.state.ease_factor == pytest.approx(2.11)
    assert result.state.interval == 8  # 15 * 0.5508


def test_mastery_ignored_on_failure(scheduler):
    mastery = _mastery(0.96, 0.9)
    state = CardSchedulingState(repetition=2, ease_factor=2.5, interval=6)

    result = scheduler.advance(0, state, concept_mastery=mastery)

    assert result.state.interval == 1
    assert result.mastery_adjustment == 0.0


def test_concept_velocity_relative_to_user():
    mastery = _mastery(0.5, 0.5, velocity=2.0, category=MasteryCategory.INTERMEDIATE)
    influence = mastery_influence(mastery, 4, user_velocity=1.0)
    assert influence.ease_adjustment == pytest.approx(0.05)
    assert influence.interval_multiplier == pytest.approx(1.1)

    neutral = mastery_influence(mastery, 4)
    assert neutral.ease_adjustment == 0.0
    assert neutral.interval_multiplier == 1.0
