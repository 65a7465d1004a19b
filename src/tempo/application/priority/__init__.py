# Application Priority Package
from .engine import PriorityEngine

__all__ = ["PriorityEngine"]
