"""ipo_sentinel.health — Per-source invocation statistics and status."""

from ipo_sentinel.health.monitor import HealthMonitor, classify_overall, classify_source

__all__ = ["HealthMonitor", "classify_overall", "classify_source"]
