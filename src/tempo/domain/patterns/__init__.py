# Domain Patterns Package
from .models import (
    LearningPattern,
    PatternResult,
    PersonalizationConfig,
    TimeSlot,
)

__all__ = ["LearningPattern", "PatternResult", "PersonalizationConfig", "TimeSlot"]
