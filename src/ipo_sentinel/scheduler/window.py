"""Trading-window check used to choose the polling cadence."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, time
from zoneinfo import ZoneInfo

from ipo_sentinel.core.config import TradingWindowConfig


@dataclass(frozen=True)
class TradingWindow:
    """Weekday interval in a market's local time, both ends inclusive.

    Comparison is at minute resolution, so 17:30:59 is still inside a
    window ending at 17:30.
    """

    timezone: str = "Asia/Kolkata"
    weekdays: tuple[int, ...] = (0, 1, 2, 3, 4)
    start: time = time(9, 15)
    end: time = time(17, 30)

    @classmethod
    def from_config(cls, config: TradingWindowConfig) -> TradingWindow:
        return cls(
            timezone=config.timezone,
            weekdays=tuple(config.weekdays),
            start=config.start,
            end=config.end,
        )

    def localize(self, now: datetime) -> datetime:
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        return now.astimezone(ZoneInfo(self.timezone))

    def contains(self, now: datetime) -> bool:
        local = self.localize(now)
        if local.weekday() not in self.weekdays:
            return False
        minute = local.time().replace(second=0, microsecond=0)
        return self.start <= minute <= self.end
