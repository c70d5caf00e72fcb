"""Classification analytics: event log, aggregation, offline evaluation."""

from tools.luna.analytics.metrics import AnalyticsFilter, build_dashboard
from tools.luna.analytics.tracker import AnalyticsTracker

__all__ = [
    "AnalyticsFilter",
    "AnalyticsTracker",
    "build_dashboard",
]
