import pytest

from helpers import NOW, make_card, make_review
from tempo.application.patterns.topics import build_topics, card_keywords, detect_plateaus
from tempo.domain.constants import MS_PER_DAY

ENZYME_CARDS = [
    make_card("e1", front="Enzyme catalysis", back="enzyme lowers activation energy"),
    make_card("e2", front="Enzyme inhibition", back="competitive enzyme binding"),
    make_card("e3", front="Enzyme kinetics", back="Michaelis enzyme constant"),
]


def _reviews(qualities_then, qualities_now):
    old = [
        make_review(f"e{(i % 3) + 1}", q, NOW - (25 - i) * MS_PER_DAY)
        for i, q in enumerate(qualities_then)
    ]
    recent = [
        make_review(f"e{(i % 3) + 1}", q, NOW - (5 - i) * MS_PER_DAY)
        for i, q in enumerate(qualities_now)
    ]
    return old + recent


def test_card_keywords_ranked_by_frequency():
    assert card_keywords(ENZYME_CARDS[0]) == ["enzyme", "activation", "catalysis"]


def test_build_topics_requires_three_cards():
    cards = ENZYME_CARDS + [make_card("x1", front="Photosynthesis", back="chlorophyll")]
    topics = build_topics(cards)
    assert topics == {"enzyme": ["e1", "e2", "e3"]}


def test_flat_topic_is_stagnant():
    reviews = _reviews([2, 2, 2, 2], [2, 2, 2, 2])

    plateau = detect_plateaus(reviews, ENZYME_CARDS, NOW)

    assert [t.topic for t in plateau.stagnant_topics] == ["enzyme"]
    stagnant = plateau.stagnant_topics[0]
    assert stagnant.card_ids == ["e1", "e2", "e3"]
    assert stagnant.improvement == 0.0
    assert stagnant.last_improvement is None
    assert plateau.contains_card("e2")
    assert not plateau.contains_card("x1")
    assert plateau.last_analyzed == NOW


def test_improving_topic_is_not_stagnant():
    reviews = _reviews([2, 2, 2, 2], [5, 5, 5, 5])

    plateau = detect_plateaus(reviews, ENZYME_CARDS, NOW)

    assert plateau.stagnant_topics == []


@pytest.mark.parametrize(
    "then,now",
    [
        ([], [2, 2, 2, 2]),
        ([2, 2, 2, 2], []),
    ],
)
def test_topic_needs_history_on_both_sides_of_threshold(then, now):
    reviews = _reviews(then, now)
    assert detect_plateaus(reviews, ENZYME_CARDS, NOW).stagnant_topics == []
