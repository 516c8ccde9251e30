"""Mutable poll state owned by one scheduler instance."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from ipo_sentinel.alerts.buffer import AlertBuffer
from ipo_sentinel.core.models import AlertEvent


@dataclass
class PollState:
    """Everything a scheduler remembers between cycles.

    Only the cycle body writes here. The previous-value maps gain keys and
    never lose them, so deltas survive an offering's absence from one poll.
    """

    alerts: AlertBuffer
    running: bool = False
    last_poll_time: datetime | None = None
    cycle_count: int = 0
    previous_totals: dict[str, float] = field(default_factory=dict)
    previous_premiums: dict[str, float] = field(default_factory=dict)
    last_error: str | None = None

    @classmethod
    def create(cls, alert_cap: int = 50) -> PollState:
        return cls(alerts=AlertBuffer(alert_cap))


class SchedulerStatus(BaseModel):
    """Point-in-time view of a scheduler for operators."""

    model_config = ConfigDict(frozen=True)

    running: bool
    last_poll_time: datetime | None
    cycle_count: int
    is_within_trading_window: bool
    next_poll_in_seconds: float | None
    alert_count: int
    recent_alerts: list[AlertEvent]
    last_error: str | None = None
