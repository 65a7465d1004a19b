"""
Domain models for real-time adaptation: interactions, deferred tasks and
study path snapshots.
"""

from dataclasses import dataclass, field, replace
from enum import Enum

from tempo.domain.constants import SUCCESS_QUALITY
from tempo.domain.priority.models import CardPriority


class InteractionType(str, Enum):
    FLIP = "flip"
    ANSWER = "answer"
    DIFFICULTY_RATING = "difficulty_rating"
    CONFIDENCE_RATING = "confidence_rating"


@dataclass(frozen=True)
class CardInteraction:
    """
    A granular study interaction awaiting incremental folding.

    Attributes:
        processed: False until a fold has consumed this interaction.
    """

    id: str
    user_id: str
    card_id: str
    deck_id: str
    interaction_type: InteractionType
    timestamp: int
    quality: int | None = None
    response_time_ms: int | None = None
    difficulty_rating: int | None = None
    confidence_level: int | None = None
    session_id: str | None = None
    processed: bool = False

    @property
    def was_successful(self) -> bool | None:
        if self.quality is None:
            return None
        return self.quality >= SUCCESS_QUALITY

    def mark_processed(self) -> "CardInteraction":
        return replace(self, processed=True)


class TaskKind(str, Enum):
    FOLD_PATTERN = "fold_pattern"
    REGENERATE_PATH = "regenerate_path"
    RECOMPUTE_PATTERN = "recompute_pattern"


@dataclass(frozen=True)
class DeferredTask:
    """
    A unit of deferred work.

    Delivery is at-least-once and best-effort: a task may run late, may be
    dropped, and may run more than once. Handlers must be idempotent.
    """

    kind: TaskKind
    user_id: str
    deck_id: str | None = None
    session_id: str | None = None
    trigger_reason: str | None = None
    force: bool = False


@dataclass(frozen=True)
class StudyPathSnapshot:
    """Write-once record of one study-path regeneration."""

    id: str
    user_id: str
    deck_id: str
    session_id: str | None
    original_order: list[str]
    new_order: list[str]
    priorities: list[CardPriority]
    trigger_reason: str
    timestamp: int


@dataclass(frozen=True)
class RecordResult:
    interaction_id: str
    path_regeneration_triggered: bool


@dataclass(frozen=True)
class FoldResult:
    """Outcome of an incremental fold; `reason` is set when nothing changed."""

    updated: bool
    reason: str | None = None
    interactions_processed: int = 0
    significant_changes: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RegenerationResult:
    regenerated: bool
    reason: str | None = None
    cards_reordered: int = 0
    top_priority_cards: list[CardPriority] = field(default_factory=list)
    trigger_reason: str | None = None
    snapshot_id: str | None = None
