"""Per-credential daily call quotas by service tier."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, time, timedelta

from ipo_sentinel.core.models import QuotaDecision, Tier, UsageQuota

logger = logging.getLogger(__name__)

UNLIMITED = -1

TIER_LIMITS: dict[Tier, int] = {
    Tier.FREE: 10,
    Tier.BASIC: 100,
    Tier.PRO: 10_000,
    Tier.ENTERPRISE: UNLIMITED,
}

Clock = Callable[[], datetime]


def _local_now() -> datetime:
    return datetime.now().astimezone()


def coerce_tier(tier: Tier | str) -> Tier:
    """Unknown tier names fall back to free."""
    try:
        return Tier(tier)
    except ValueError:
        return Tier.FREE


def tier_limit(tier: Tier | str) -> int:
    return TIER_LIMITS[coerce_tier(tier)]


def next_midnight(now: datetime) -> datetime:
    return datetime.combine(now.date() + timedelta(days=1), time.min, tzinfo=now.tzinfo)


class QuotaTracker:
    """In-memory daily usage counters keyed by credential.

    Usage is scoped to the local calendar day: a counter whose stored day is
    not today reads as zero and restarts on the next increment.

    ``check`` and ``record_usage`` are separate steps. Two requests checked
    before either records can both be admitted at the ceiling, so the limit
    is advisory rather than a hard guarantee.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or _local_now
        self._usage: dict[str, UsageQuota] = {}

    def _current(self, credential: str, tier: Tier) -> UsageQuota:
        today = self._clock().date()
        quota = self._usage.get(credential)
        if quota is None or quota.day != today:
            if quota is not None:
                logger.debug("Quota day rolled over for %s", credential[:6])
            quota = UsageQuota(credential=credential, tier=tier, calls_today=0, day=today)
            self._usage[credential] = quota
        quota.tier = tier
        return quota

    def usage(self, credential: str, tier: Tier = Tier.FREE) -> UsageQuota:
        return self._current(credential, tier)

    def check(self, credential: str, tier: Tier | str) -> QuotaDecision:
        """Whether ``credential`` may make another call today."""
        tier = coerce_tier(tier)
        limit = tier_limit(tier)
        quota = self._current(credential, tier)
        reset_at = next_midnight(self._clock())

        if limit == UNLIMITED:
            return QuotaDecision(allowed=True, remaining=UNLIMITED, limit=UNLIMITED, reset_at=reset_at)

        return QuotaDecision(
            allowed=quota.calls_today < limit,
            remaining=max(0, limit - quota.calls_today),
            limit=limit,
            reset_at=reset_at,
        )

    def record_usage(self, credential: str, tier: Tier | str) -> int:
        """Count one completed request (admitted or rejected). Returns today's total."""
        tier = coerce_tier(tier)
        quota = self._current(credential, tier)
        quota.calls_today += 1
        return quota.calls_today
