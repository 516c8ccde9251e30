"""Tests for per-credential daily quotas."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from ipo_sentinel.core.models import Tier
from ipo_sentinel.quota.tracker import QuotaTracker, coerce_tier, next_midnight, tier_limit

IST = timezone(timedelta(hours=5, minutes=30))


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> Clock:
    return Clock(datetime(2025, 1, 6, 23, 50, tzinfo=IST))


@pytest.fixture
def tracker(clock) -> QuotaTracker:
    return QuotaTracker(clock=clock)


class TestTiers:
    @pytest.mark.parametrize(
        "tier, limit",
        [("free", 10), ("basic", 100), ("pro", 10_000), ("enterprise", -1)],
    )
    def test_limits(self, tier, limit):
        assert tier_limit(tier) == limit

    def test_unknown_tier_is_free(self):
        assert coerce_tier("platinum") == Tier.FREE
        assert tier_limit("platinum") == 10

    def test_next_midnight_keeps_zone(self):
        now = datetime(2025, 1, 6, 23, 50, tzinfo=IST)
        assert next_midnight(now) == datetime(2025, 1, 7, 0, 0, tzinfo=IST)


class TestQuotaTracker:
    def test_fresh_credential(self, tracker):
        decision = tracker.check("key-1", Tier.FREE)
        assert decision.allowed is True
        assert decision.remaining == 10
        assert decision.limit == 10
        assert decision.reset_at == datetime(2025, 1, 7, tzinfo=IST)

    def test_ceiling_reached(self, tracker):
        for expected in range(1, 11):
            assert tracker.record_usage("key-1", Tier.FREE) == expected

        decision = tracker.check("key-1", Tier.FREE)
        assert decision.allowed is False
        assert decision.remaining == 0

    def test_one_below_ceiling(self, tracker):
        for _ in range(9):
            tracker.record_usage("key-1", Tier.FREE)
        decision = tracker.check("key-1", Tier.FREE)
        assert decision.allowed is True
        assert decision.remaining == 1

    def test_remaining_never_negative(self, tracker):
        for _ in range(15):
            tracker.record_usage("key-1", "free")
        assert tracker.check("key-1", "free").remaining == 0

    def test_day_rollover_resets(self, tracker, clock):
        for _ in range(10):
            tracker.record_usage("key-1", Tier.FREE)
        assert tracker.check("key-1", Tier.FREE).allowed is False

        clock.now += timedelta(minutes=15)
        decision = tracker.check("key-1", Tier.FREE)
        assert decision.allowed is True
        assert decision.remaining == 10
        assert tracker.usage("key-1").calls_today == 0

    def test_enterprise_unlimited(self, tracker):
        for _ in range(50):
            tracker.record_usage("big", Tier.ENTERPRISE)
        decision = tracker.check("big", Tier.ENTERPRISE)
        assert decision.allowed is True
        assert decision.remaining == -1
        assert decision.limit == -1

    def test_credentials_are_independent(self, tracker):
        for _ in range(10):
            tracker.record_usage("key-1", Tier.FREE)
        assert tracker.check("key-2", Tier.FREE).allowed is True

    def test_tier_change_applies_immediately(self, tracker):
        for _ in range(10):
            tracker.record_usage("key-1", Tier.FREE)
        assert tracker.check("key-1", Tier.BASIC).allowed is True
        assert tracker.usage("key-1").tier == Tier.BASIC
