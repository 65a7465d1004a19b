# Application Realtime Package
from .fold import blend_weight, fold_interactions, significant_changes
from .updater import RealTimeUpdater

__all__ = ["RealTimeUpdater", "blend_weight", "fold_interactions", "significant_changes"]
