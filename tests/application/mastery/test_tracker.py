import pytest

from helpers import NOW, USER, make_card, make_review
from tempo.application.cache.service import CacheLayer
from tempo.application.mastery.service import ConceptMasteryService
from tempo.application.mastery.tracker import (
    build_concept_masteries,
    calculate_mastery_level,
    detect_trend,
    extract_concepts,
    mastery_for_card,
)
from tempo.application.utils.clock import fixed_clock
from tempo.domain.cache.models import HitType
from tempo.domain.constants import MS_PER_DAY
from tempo.domain.scheduling.models import DifficultyTrend, MasteryCategory
from tempo.infrastructure.persistence.memory import (
    InMemoryCacheMetricStore,
    InMemoryCacheStore,
    InMemoryCardRepository,
    InMemoryReviewRecordStore,
)

MITO = make_card("c1", front="Mitochondria powerhouse", back="cell energy")
CHLORO = make_card("c2", front="Chlorophyll pigment", back="green energy")


def _daily_reviews(card_id, qualities, days_ago_start):
    return [
        make_review(card_id, q, NOW - (days_ago_start - i) * MS_PER_DAY)
        for i, q in enumerate(qualities)
    ]


def test_extract_concepts_skips_stop_words_and_duplicates():
    text = "What is Photosynthesis? Photosynthesis uses light energy."
    assert extract_concepts(text) == ["photosynthesis", "uses", "light", "energy"]


def test_extract_concepts_limit():
    text = "alpha bravo charlie delta echo foxtrot golf"
    assert extract_concepts(text) == ["alpha", "bravo", "charlie", "delta", "echo"]


def test_detect_trend():
    newer_good = [make_review("c", 5, NOW - i) for i in range(10)]
    older_bad = [make_review("c", 1, NOW - 100 - i) for i in range(10)]

    assert detect_trend(newer_good + older_bad) is DifficultyTrend.IMPROVING
    assert detect_trend(older_bad + newer_good) is DifficultyTrend.DECLINING
    assert detect_trend(newer_good + newer_good) is DifficultyTrend.STABLE


@pytest.mark.parametrize(
    "rate,count,rt,trend,expected",
    [
        (1.0, 4, None, DifficultyTrend.STABLE, 0.0),
        (1.0, 20, None, DifficultyTrend.STABLE, 1.0),
        (0.8, 10, 10_000, DifficultyTrend.STABLE, 0.34),
        (0.5, 20, None, DifficultyTrend.DECLINING, 0.45),
        (1.0, 20, 2_000, DifficultyTrend.IMPROVING, 1.0),
    ],
)
def test_calculate_mastery_level(rate, count, rt, trend, expected):
    assert calculate_mastery_level(rate, count, rt, trend) == pytest.approx(expected)


def test_build_concept_masteries():
    reviews = _daily_reviews("c1", [5] * 6, 5) + _daily_reviews("c2", [1, 5], 2)
    # Outside the 30-day window
    reviews.append(make_review("c2", 5, NOW - 40 * MS_PER_DAY))

    masteries = build_concept_masteries([MITO, CHLORO], reviews, NOW)

    assert set(masteries) == {"mitochondria", "powerhouse", "cell", "energy"}
    mito = masteries["mitochondria"]
    assert mito.review_count == 6
    assert mito.success_rate == 1.0
    assert mito.confidence_level == 1.0
    assert mito.difficulty_trend is DifficultyTrend.IMPROVING
    assert mito.mastery_level == pytest.approx(1.1 * 0.79)
    assert mito.mastery_category is MasteryCategory.ADVANCED
    assert mito.learning_velocity == pytest.approx(mito.mastery_level / 5)
    assert mito.last_reviewed == NOW

    energy = masteries["energy"]
    assert energy.review_count == 8
    assert energy.success_rate == pytest.approx(7 / 8)


def test_mastery_for_card_prefers_strongest_concept():
    reviews = _daily_reviews("c1", [5] * 6, 5) + _daily_reviews("c2", [1, 1, 1, 5, 1, 1], 6)
    masteries = build_concept_masteries([MITO, CHLORO], reviews, NOW)

    best = mastery_for_card(MITO, masteries)
    assert best.concept_id == "mitochondria"

    chloro = mastery_for_card(CHLORO, masteries)
    assert chloro.concept_id == "energy"

    unknown = make_card("c3", front="Krebs", back="cycle")
    assert mastery_for_card(unknown, masteries) is None


@pytest.mark.asyncio
async def test_mastery_service_caches_results(deck):
    cards = InMemoryCardRepository(decks=[deck], cards=[MITO, CHLORO])
    reviews = InMemoryReviewRecordStore(_daily_reviews("c1", [5] * 6, 5))
    metrics = InMemoryCacheMetricStore()
    clock = fixed_clock(NOW)
    cache = CacheLayer(InMemoryCacheStore(), metrics, clock=clock)
    service = ConceptMasteryService(cards, reviews, cache, clock=clock)

    first = await service.get_masteries(USER)
    second = await service.get_masteries(USER)

    assert first == second
    assert first["cell"].difficulty_trend is DifficultyTrend.IMPROVING
    recorded = [m.hit_type for m in await metrics.list_since(0)]
    assert recorded == [HitType.MISS, HitType.HIT]
