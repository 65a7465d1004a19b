# Domain Priority Package
from .models import CardPriority, PriorityResult, PriorityWeights, QueuedCard

__all__ = ["CardPriority", "PriorityResult", "PriorityWeights", "QueuedCard"]
