"""
Keyword topics and plateau detection.

Topics are a naive clustering: each card contributes its most frequent
words, and a word shared by enough cards becomes a topic.
"""

import re
from collections import Counter
from collections.abc import Iterable

from tempo.application.utils.stats import mean, success_rate
from tempo.domain.constants import (
    MS_PER_DAY,
    PLATEAU_MIN_IMPROVEMENT,
    PLATEAU_THRESHOLD_DAYS,
    TOPIC_KEYWORDS_PER_CARD,
    TOPIC_MIN_CARDS,
    TOPIC_MIN_WORD_LENGTH,
)
from tempo.domain.patterns.models import PlateauDetection, StagnantTopic
from tempo.domain.scheduling.models import Card, ReviewRecord

_NON_WORD = re.compile(r"[^\w\s]")


def card_keywords(card: Card, limit: int = TOPIC_KEYWORDS_PER_CARD) -> list[str]:
    """Most frequent words of at least four characters, ties alphabetical."""
    words = _NON_WORD.sub(" ", f"{card.front} {card.back}".lower()).split()
    counts = Counter(w for w in words if len(w) >= TOPIC_MIN_WORD_LENGTH)
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [word for word, _ in ranked[:limit]]


def build_topics(cards: Iterable[Card]) -> dict[str, list[str]]:
    """Map topic keyword -> sorted card ids, for keywords shared by >= 3 cards."""
    members: dict[str, set[str]] = {}
    for card in cards:
        for keyword in card_keywords(card):
            members.setdefault(keyword, set()).add(card.id)

    return {
        topic: sorted(card_ids)
        for topic, card_ids in sorted(members.items())
        if len(card_ids) >= TOPIC_MIN_CARDS
    }


def _sliding_windows(reviews: list[ReviewRecord]) -> list[tuple[int, float]]:
    """(end timestamp, success rate) of each window of size max(1, n // 4)."""
    size = max(1, len(reviews) // 4)
    windows = []
    for start in range(len(reviews) - size + 1):
        chunk = reviews[start : start + size]
        windows.append((chunk[-1].timestamp, success_rate(r.was_successful for r in chunk)))
    return windows


def _stagnant_topic(
    topic: str,
    card_ids: list[str],
    reviews: list[ReviewRecord],
    now: int,
) -> StagnantTopic | None:
    windows = _sliding_windows(reviews)
    cutoff = now - PLATEAU_THRESHOLD_DAYS * MS_PER_DAY

    before = [rate for end, rate in windows if end <= cutoff]
    after = [rate for end, rate in windows if end > cutoff]
    if not before or not after:
        return None

    improvement = mean(after) - mean(before)

    last_improvement = None
    for (_, previous), (end, rate) in zip(windows, windows[1:]):
        if rate > previous:
            last_improvement = end

    # Without any improving window, the topic has been flat since its first review
    reference = last_improvement if last_improvement is not None else reviews[0].timestamp
    if improvement >= PLATEAU_MIN_IMPROVEMENT or reference > cutoff:
        return None

    return StagnantTopic(
        topic=topic,
        card_ids=card_ids,
        improvement=improvement,
        last_improvement=last_improvement,
    )


def detect_plateaus(
    reviews: list[ReviewRecord],
    cards: Iterable[Card],
    now: int,
) -> PlateauDetection:
    """
    Flag topics whose recent success rate has not improved.

    Args:
        reviews: Analysis window, sorted by (timestamp, id).
        cards: Cards used to build keyword topics.
        now: Reference time in epoch ms.
    """
    topics = build_topics(cards)
    stagnant = []
    for topic, card_ids in topics.items():
        members = set(card_ids)
        topic_reviews = [r for r in reviews if r.card_id in members]
        if not topic_reviews:
            continue
        found = _stagnant_topic(topic, card_ids, topic_reviews, now)
        if found is not None:
            stagnant.append(found)

    return PlateauDetection(
        stagnant_topics=stagnant,
        plateau_threshold_days=PLATEAU_THRESHOLD_DAYS,
        last_analyzed=now,
    )
