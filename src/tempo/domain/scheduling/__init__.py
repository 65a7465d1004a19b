# Domain Scheduling Package
from .models import (
    AdvanceResult,
    Card,
    CardSchedulingState,
    ConceptMastery,
    Deck,
    Difficulty,
    DifficultyTrend,
    MasteryCategory,
    ReviewRecord,
    resolve_state,
)

__all__ = [
    "AdvanceResult",
    "Card",
    "CardSchedulingState",
    "ConceptMastery",
    "Deck",
    "Difficulty",
    "DifficultyTrend",
    "MasteryCategory",
    "ReviewRecord",
    "resolve_state",
]
