# Application Scheduling Package
from .sm2 import MasteryInfluence, Sm2Scheduler, mastery_influence, validate_quality

__all__ = ["Sm2Scheduler", "MasteryInfluence", "mastery_influence", "validate_quality"]
