"""Adaptive poll scheduler.

Lifecycle: Stopped → Running → Stopped. ``start()`` runs one cycle right
away and then hands over to a single loop task:

    while running:
        delay = next_delay()          # short inside the trading window
        await sleep(delay)
        await shield(cycle)           # stop() cannot interrupt a cycle

Cycles are serialized by a lock, so a manual poll that overlaps a scheduled
one waits for it instead of interleaving.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

from ipo_sentinel.aggregation.aggregator import Aggregator
from ipo_sentinel.alerts.engine import evaluate_alerts
from ipo_sentinel.core.config import AlertsConfig, SchedulerConfig
from ipo_sentinel.core.exceptions import ConfigError, StorageError
from ipo_sentinel.core.models import (
    AggregationResult,
    AlertEvent,
    OperationKind,
    PollSummary,
    PremiumQuote,
    ReconciledRecord,
    SubscriptionLevel,
)
from ipo_sentinel.scheduler.state import PollState, SchedulerStatus
from ipo_sentinel.scheduler.window import TradingWindow
from ipo_sentinel.storage.store import (
    SERIES_PREMIUM,
    SERIES_SUBSCRIPTION_TOTAL,
    StorageProtocol,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Sleeper = Callable[[float], Awaitable[None]]

STATUS_RECENT_ALERTS = 10


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PollScheduler:
    """Re-polls subscriptions and premiums on a cadence set by the trading window.

    Args:
        aggregator: Source of reconciled subscription and premium records.
        store: Optional persistence; per-record write failures are logged
            and skipped.
        config: Delays, trading window and alert buffer cap.
        alerts_config: Alert thresholds.
        clock: Returns the current aware datetime. Injected by tests.
        sleep: Awaitable delay. Injected by tests.
    """

    def __init__(
        self,
        aggregator: Aggregator,
        store: StorageProtocol | None = None,
        config: SchedulerConfig | None = None,
        alerts_config: AlertsConfig | None = None,
        clock: Clock | None = None,
        sleep: Sleeper | None = None,
    ) -> None:
        self._aggregator = aggregator
        self._store = store
        self._config = config or SchedulerConfig()
        self._alerts_config = alerts_config or AlertsConfig()
        self._clock = clock or _utcnow
        self._sleep = sleep or asyncio.sleep
        self._window = TradingWindow.from_config(self._config.trading_window)

        self.state = PollState.create(self._config.alert_buffer_cap)
        self._lock = asyncio.Lock()
        self._loop_task: asyncio.Task[None] | None = None
        self._cycle_task: asyncio.Task[PollSummary | None] | None = None
        self._next_poll_at: datetime | None = None

    # --- Lifecycle ---

    @property
    def running(self) -> bool:
        return self.state.running

    @property
    def window(self) -> TradingWindow:
        return self._window

    async def start(self) -> bool:
        """Run one cycle now and arm the loop. Returns False if already running."""
        if self.state.running:
            logger.info("Scheduler already running; start ignored")
            return False

        self.state.running = True
        logger.info(
            "Scheduler started (%.0fs inside trading window, %.0fs outside)",
            self._config.active_delay_seconds, self._config.idle_delay_seconds,
        )
        await asyncio.shield(self._spawn_cycle())

        if self.state.running and self._loop_task is None:
            self._loop_task = asyncio.create_task(self._loop(), name="ipo-sentinel-poll-loop")
        return True

    async def stop(self) -> bool:
        """Cancel the pending wait. An in-flight cycle still completes.

        Returns False if the scheduler was not running.
        """
        if not self.state.running:
            logger.info("Scheduler not running; stop ignored")
            return False

        self.state.running = False
        self._next_poll_at = None
        task, self._loop_task = self._loop_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                # Raised by the loop task we just cancelled
                pass
        logger.info("Scheduler stopped after %d cycles", self.state.cycle_count)
        return True

    async def wait_idle(self) -> None:
        """Wait for an in-flight scheduled cycle, if any, to finish."""
        task = self._cycle_task
        if task is not None and not task.done():
            await asyncio.wait([task])

    def next_delay(self) -> float:
        """Seconds until the next cycle, recomputed from the current time."""
        if self._window.contains(self._clock()):
            return self._config.active_delay_seconds
        return self._config.idle_delay_seconds

    async def _loop(self) -> None:
        while self.state.running:
            delay = self.next_delay()
            self._next_poll_at = self._clock() + timedelta(seconds=delay)
            logger.debug("Next poll in %.0fs", delay)
            await self._sleep(delay)
            if not self.state.running:
                break
            await asyncio.shield(self._spawn_cycle())

    def _spawn_cycle(self) -> asyncio.Task[PollSummary | None]:
        self._cycle_task = asyncio.create_task(self._scheduled_cycle(), name="ipo-sentinel-poll")
        return self._cycle_task

    async def _scheduled_cycle(self) -> PollSummary | None:
        try:
            return await self.run_cycle(trigger="scheduled")
        except Exception as e:
            logger.exception("Poll cycle failed")
            self.state.last_error = str(e) or type(e).__name__
            return None

    # --- Cycle ---

    async def trigger_manual_poll(self) -> PollSummary:
        """Run a cycle now without touching the armed wait. Errors propagate."""
        return await self.run_cycle(trigger="manual")

    async def run_cycle(self, trigger: str = "scheduled") -> PollSummary:
        """Aggregate, detect alerts, update baselines, persist, buffer alerts."""
        async with self._lock:
            started = self._clock()
            subscriptions, premiums = await asyncio.gather(
                self._aggregate(OperationKind.SUBSCRIPTIONS, started),
                self._aggregate(OperationKind.PREMIUMS, started),
            )

            state = self.state
            levels = [
                SubscriptionLevel.from_record(r, state.previous_totals.get(r.key))
                for r in subscriptions.data
            ]
            quotes = [q for q in (PremiumQuote.from_record(r) for r in premiums.data) if q]

            alerts = evaluate_alerts(
                levels, quotes, state.previous_premiums, config=self._alerts_config, now=started
            )

            for level in levels:
                if level.total is not None:
                    state.previous_totals[level.key] = level.total
            for quote in quotes:
                state.previous_premiums[quote.key] = quote.premium

            persisted = await self._persist(subscriptions.data, premiums.data, started)

            state.alerts.extend(alerts)
            finished = self._clock()
            state.last_poll_time = finished
            state.cycle_count += 1
            state.last_error = None

        self._log_summary(trigger, levels, quotes, alerts)
        return PollSummary(
            cycle=state.cycle_count,
            trigger=trigger,
            subscriptions=levels,
            premiums=quotes,
            alerts=alerts,
            subscription_sources=subscriptions.successful_sources,
            premium_sources=premiums.successful_sources,
            persisted=persisted,
            started_at=started,
            finished_at=finished,
        )

    async def _aggregate(self, kind: OperationKind, timestamp: datetime) -> AggregationResult:
        """One pass for ``kind``; an empty result when no configured source serves it."""
        try:
            return await self._aggregator.aggregate(kind)
        except ConfigError as e:
            logger.warning("Skipping %s this cycle: %s", kind, e)
            return AggregationResult(
                kind=kind,
                data=[],
                source_outcomes=[],
                total_sources_queried=0,
                successful_sources=0,
                timestamp=timestamp,
            )

    async def _persist(
        self,
        subscriptions: list[ReconciledRecord],
        premiums: list[ReconciledRecord],
        timestamp: datetime,
    ) -> int:
        if self._store is None:
            return 0

        persisted = 0
        for records, field, series in (
            (subscriptions, "total", SERIES_SUBSCRIPTION_TOTAL),
            (premiums, "premium", SERIES_PREMIUM),
        ):
            for record in records:
                try:
                    await self._store.upsert_by_symbol(record)
                    value = record.get_float(field)
                    if value is not None:
                        await self._store.append_time_series(record.key, series, value, timestamp)
                    persisted += 1
                except StorageError as e:
                    logger.warning("Failed to persist %s %s: %s", record.kind, record.key, e)
        return persisted

    def _log_summary(
        self,
        trigger: str,
        levels: list[SubscriptionLevel],
        quotes: list[PremiumQuote],
        alerts: list[AlertEvent],
    ) -> None:
        logger.info(
            "Poll #%d (%s): %d subscriptions, %d premiums, %d alerts; next in %.0fs",
            self.state.cycle_count, trigger, len(levels), len(quotes), len(alerts),
            self.next_delay(),
        )
        for alert in alerts:
            logger.info("[%s] %s", alert.severity, alert.message)

    # --- Status ---

    def status(self) -> SchedulerStatus:
        now = self._clock()
        next_in = None
        if self.state.running and self._next_poll_at is not None:
            next_in = max(0.0, (self._next_poll_at - now).total_seconds())
        return SchedulerStatus(
            running=self.state.running,
            last_poll_time=self.state.last_poll_time,
            cycle_count=self.state.cycle_count,
            is_within_trading_window=self._window.contains(now),
            next_poll_in_seconds=next_in,
            alert_count=len(self.state.alerts),
            recent_alerts=self.state.alerts.recent(STATUS_RECENT_ALERTS),
            last_error=self.state.last_error,
        )

    def recent_alerts(self, limit: int = 20) -> list[AlertEvent]:
        return self.state.alerts.recent(limit)

    def clear_alerts(self) -> int:
        cleared = len(self.state.alerts)
        self.state.alerts.clear()
        logger.info("Cleared %d alerts", cleared)
        return cleared
