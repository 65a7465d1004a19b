# Application Mastery Package
from .service import ConceptMasteryService
from .tracker import (
    build_concept_masteries,
    calculate_mastery_level,
    extract_concepts,
    mastery_for_card,
)

__all__ = [
    "ConceptMasteryService",
    "build_concept_masteries",
    "calculate_mastery_level",
    "extract_concepts",
    "mastery_for_card",
]
