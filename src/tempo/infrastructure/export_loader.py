"""
Loads a JSON study export into in-memory stores.

Export format:
    {
      "decks":   [{"id", "user_id", "name"}],
      "cards":   [{"id", "deck_id", "user_id", "front", "back", "scheduling"?}],
      "reviews": [{"id", "user_id", "card_id", "deck_id", "timestamp", "quality",
                   "before", "after", "hour_of_day", ...}]
    }

Timestamps are epoch milliseconds. Missing sections are treated as empty.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from tempo.domain.exceptions import ValidationError
from tempo.domain.scheduling.models import Card, Deck, ReviewRecord
from tempo.infrastructure.persistence.memory import (
    InMemoryCardRepository,
    InMemoryReviewRecordStore,
)

logger = logging.getLogger(__name__)


class StudyExport(BaseModel):
    decks: list[Deck] = Field(default_factory=list)
    cards: list[Card] = Field(default_factory=list)
    reviews: list[ReviewRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_references(self) -> "StudyExport":
        deck_ids = {d.id for d in self.decks}
        for card in self.cards:
            if card.deck_id not in deck_ids:
                raise ValueError(f"Card {card.id} references unknown deck {card.deck_id}")
        card_ids = {c.id for c in self.cards}
        for review in self.reviews:
            if review.card_id not in card_ids:
                raise ValueError(f"Review {review.id} references unknown card {review.card_id}")
        return self


@dataclass
class LoadedExport:
    cards: InMemoryCardRepository
    reviews: InMemoryReviewRecordStore
    export: StudyExport

    @property
    def user_ids(self) -> list[str]:
        return sorted({d.user_id for d in self.export.decks})


def parse_export(raw: str) -> StudyExport:
    try:
        return StudyExport.model_validate_json(raw)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid export: {e}") from e


def load_export(path: Path) -> LoadedExport:
    """
    Read an export file and build stores seeded with its contents.

    Raises:
        ValidationError: The file is unreadable, malformed or inconsistent.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ValidationError(f"Cannot read export {path}: {e}") from e

    export = parse_export(raw)
    logger.info(
        f"Loaded {len(export.decks)} decks, {len(export.cards)} cards "
        f"and {len(export.reviews)} reviews from {path}"
    )
    return LoadedExport(
        cards=InMemoryCardRepository(decks=export.decks, cards=export.cards),
        reviews=InMemoryReviewRecordStore(export.reviews),
        export=export,
    )
