"""ipo_sentinel.scheduler — Adaptive background polling."""

from ipo_sentinel.scheduler.poller import PollScheduler
from ipo_sentinel.scheduler.state import PollState, SchedulerStatus
from ipo_sentinel.scheduler.window import TradingWindow

__all__ = ["PollScheduler", "PollState", "SchedulerStatus", "TradingWindow"]
