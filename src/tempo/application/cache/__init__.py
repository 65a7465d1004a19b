# Application Cache Package
from .analytics import CacheAnalyticsService, summarize_metrics
from .service import CacheLayer

__all__ = ["CacheLayer", "CacheAnalyticsService", "summarize_metrics"]
