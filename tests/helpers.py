from tempo.domain.constants import MS_PER_DAY, MS_PER_HOUR
from tempo.domain.scheduling.models import Card, CardSchedulingState, ReviewRecord

# 2024-03-01 12:00:00 UTC
NOW = 1_709_294_400_000
USER = "user_1"
DECK = "deck_1"


def make_card(
    card_id: str,
    front: str = "What is photosynthesis",
    back: str = "Plants converting sunlight into chemical energy",
    scheduling: CardSchedulingState | None = None,
    deck_id: str = DECK,
    user_id: str = USER,
) -> Card:
    return Card(
        id=card_id,
        deck_id=deck_id,
        user_id=user_id,
        front=front,
        back=back,
        scheduling=scheduling,
    )


def make_review(
    card_id: str,
    quality: int,
    timestamp: int,
    review_id: str | None = None,
    ease: float = 2.5,
    hour: int = 12,
    response_time_ms: int | None = None,
    confidence_rating: int | None = None,
    interval_after: int = 1,
    user_id: str = USER,
) -> ReviewRecord:
    before = CardSchedulingState(ease_factor=ease, due_date=timestamp)
    after = CardSchedulingState(
        repetition=1 if quality >= 3 else 0,
        ease_factor=ease,
        interval=interval_after,
        due_date=timestamp + interval_after * MS_PER_DAY,
    )
    return ReviewRecord(
        id=review_id or f"rev_{card_id}_{timestamp}",
        user_id=user_id,
        card_id=card_id,
        deck_id=DECK,
        timestamp=timestamp,
        quality=quality,
        before=before,
        after=after,
        hour_of_day=hour,
        response_time_ms=response_time_ms,
        confidence_rating=confidence_rating,
    )


def review_series(card_id: str, qualities: list[int], start: int, step: int = MS_PER_HOUR):
    """Reviews of one card at start, start+step, ..., oldest first."""
    return [make_review(card_id, q, start + i * step) for i, q in enumerate(qualities)]


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, now: int = NOW):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms
