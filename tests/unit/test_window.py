"""Tests for the trading-window check."""

from __future__ import annotations

from datetime import UTC, datetime, time

import pytest

from ipo_sentinel.core.config import TradingWindowConfig
from ipo_sentinel.scheduler.window import TradingWindow


@pytest.fixture
def window() -> TradingWindow:
    return TradingWindow()


class TestTradingWindow:
    # 2025-01-06 is a Monday; IST is UTC+05:30
    @pytest.mark.parametrize(
        "utc, expected",
        [
            (datetime(2025, 1, 6, 3, 44, tzinfo=UTC), False),  # 09:14 IST
            (datetime(2025, 1, 6, 3, 45, tzinfo=UTC), True),  # 09:15 IST
            (datetime(2025, 1, 6, 8, 0, tzinfo=UTC), True),  # 13:30 IST
            (datetime(2025, 1, 6, 12, 0, 59, tzinfo=UTC), True),  # 17:30:59 IST
            (datetime(2025, 1, 6, 12, 1, tzinfo=UTC), False),  # 17:31 IST
        ],
    )
    def test_weekday_boundaries(self, window, utc, expected):
        assert window.contains(utc) is expected

    def test_weekend_excluded(self, window):
        saturday_midday_ist = datetime(2025, 1, 11, 6, 30, tzinfo=UTC)
        assert window.contains(saturday_midday_ist) is False

    def test_utc_friday_evening_is_ist_saturday(self, window):
        # Friday 19:00 UTC is Saturday 00:30 IST
        assert window.contains(datetime(2025, 1, 10, 19, 0, tzinfo=UTC)) is False

    def test_naive_treated_as_utc(self, window):
        assert window.contains(datetime(2025, 1, 6, 3, 45)) is True
        assert window.contains(datetime(2025, 1, 6, 9, 15)) is True
        assert window.contains(datetime(2025, 1, 6, 13, 0)) is False

    def test_from_config(self):
        config = TradingWindowConfig(
            timezone="UTC", weekdays=[5, 6], start=time(10, 0), end=time(11, 0)
        )
        window = TradingWindow.from_config(config)
        assert window.contains(datetime(2025, 1, 11, 10, 30, tzinfo=UTC)) is True
        assert window.contains(datetime(2025, 1, 6, 10, 30, tzinfo=UTC)) is False
