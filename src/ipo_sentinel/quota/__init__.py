"""ipo_sentinel.quota — Tiered daily request quotas."""

from ipo_sentinel.quota.tracker import TIER_LIMITS, UNLIMITED, QuotaTracker, next_midnight, tier_limit

__all__ = ["QuotaTracker", "TIER_LIMITS", "UNLIMITED", "next_midnight", "tier_limit"]
