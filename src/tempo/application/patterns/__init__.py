# Application Patterns Package
from .analyzer import INSUFFICIENT_DATA, PatternAnalyzer
from .service import LearningPatternService
from .topics import build_topics, detect_plateaus

__all__ = [
    "PatternAnalyzer",
    "LearningPatternService",
    "INSUFFICIENT_DATA",
    "build_topics",
    "detect_plateaus",
]
