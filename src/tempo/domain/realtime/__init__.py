# Domain Real-time Package
from .models import (
    CardInteraction,
    DeferredTask,
    FoldResult,
    InteractionType,
    RegenerationResult,
    StudyPathSnapshot,
    TaskKind,
)

__all__ = [
    "CardInteraction",
    "DeferredTask",
    "FoldResult",
    "InteractionType",
    "RegenerationResult",
    "StudyPathSnapshot",
    "TaskKind",
]
