"""Source health monitoring from observed adapter invocations."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from ipo_sentinel.core.models import (
    HealthReport,
    HealthStatus,
    InvocationRecord,
    InvocationStatus,
    SourceHealth,
    SourceName,
    SourceStats,
)

logger = logging.getLogger(__name__)

HEALTHY_RATE = 80
DEGRADED_RATE = 50
HEALTHY_SOURCES_FOR_OVERALL = 3

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def classify_source(stats: SourceStats | None) -> HealthStatus:
    """healthy ≥80% success, degraded ≥50%, otherwise down. No calls means down."""
    if stats is None or stats.calls == 0:
        return HealthStatus.DOWN
    if stats.success_rate >= HEALTHY_RATE:
        return HealthStatus.HEALTHY
    if stats.success_rate >= DEGRADED_RATE:
        return HealthStatus.DEGRADED
    return HealthStatus.DOWN


def classify_overall(statuses: list[HealthStatus]) -> HealthStatus:
    healthy = sum(1 for s in statuses if s == HealthStatus.HEALTHY)
    if healthy >= HEALTHY_SOURCES_FOR_OVERALL:
        return HealthStatus.HEALTHY
    if healthy >= 1:
        return HealthStatus.DEGRADED
    return HealthStatus.DOWN


class HealthMonitor:
    """Records every adapter invocation and derives per-source health.

    Adapters call ``record()`` through the InvocationObserver protocol. The
    monitor is never consulted by the aggregator; it only serves operators.
    Entries are held in memory and pruned by age once they fall outside
    ``retention_hours``; a record inside any query window is never dropped.
    """

    def __init__(
        self,
        window_hours: float = 24.0,
        status_window_hours: float = 1.0,
        retention_hours: float = 24.0 * 30,
        clock: Clock | None = None,
        members: list[str] | None = None,
    ) -> None:
        self._window_hours = window_hours
        self._status_window_hours = status_window_hours
        self._retention = timedelta(hours=retention_hours)
        self._entries: deque[InvocationRecord] = deque()
        self._clock = clock or _utcnow
        self._members = members or [s.value for s in SourceName]

    def record(self, invocation: InvocationRecord) -> None:
        self._entries.append(invocation)
        self._prune()
        if invocation.status == InvocationStatus.SUCCESS:
            logger.debug(
                "[%s] %s ok: %d records (%dms)",
                invocation.source, invocation.kind, invocation.records, invocation.elapsed_ms,
            )
        else:
            logger.debug(
                "[%s] %s %s: %s (%dms)",
                invocation.source, invocation.kind, invocation.status,
                invocation.error, invocation.elapsed_ms,
            )

    def _prune(self) -> None:
        cutoff = self._clock() - self._retention
        while self._entries and self._entries[0].recorded_at < cutoff:
            self._entries.popleft()

    def __len__(self) -> int:
        return len(self._entries)

    def source_stats(self, hours: float | None = None) -> list[SourceStats]:
        """Per-source counters over the trailing ``hours`` (default: stats window)."""
        hours = self._window_hours if hours is None else hours
        since = self._clock() - timedelta(hours=hours)

        buckets: dict[str, list[InvocationRecord]] = {}
        for entry in self._entries:
            if entry.recorded_at >= since:
                buckets.setdefault(entry.source, []).append(entry)

        stats = []
        for source, entries in buckets.items():
            calls = len(entries)
            successes = [e for e in entries if e.status == InvocationStatus.SUCCESS]
            failures = [e for e in entries if e.status != InvocationStatus.SUCCESS]
            stats.append(
                SourceStats(
                    source=source,
                    calls=calls,
                    successes=len(successes),
                    errors=len(failures),
                    avg_latency_ms=round(sum(e.elapsed_ms for e in entries) / calls),
                    last_success=max((e.recorded_at for e in successes), default=None),
                    last_error=max((e.recorded_at for e in failures), default=None),
                    success_rate=round(len(successes) / calls * 100),
                )
            )
        return stats

    def health_report(self) -> HealthReport:
        """Status of every known source over the status window, plus overall."""
        stats = {s.source: s for s in self.source_stats(self._status_window_hours)}

        sources = []
        for name in self._members:
            source_stats = stats.get(name)
            sources.append(
                SourceHealth(
                    name=name,
                    status=classify_source(source_stats),
                    last_check=_latest(source_stats),
                )
            )

        return HealthReport(
            sources=sources,
            overall=classify_overall([s.status for s in sources]),
            generated_at=self._clock(),
        )

    def recent(self, limit: int = 50, source: str | None = None) -> list[InvocationRecord]:
        """Most recent invocations first, optionally filtered by source."""
        entries = [e for e in reversed(self._entries) if source is None or e.source == source]
        return entries[:limit]


def _latest(stats: SourceStats | None) -> datetime | None:
    if stats is None:
        return None
    return max((t for t in (stats.last_success, stats.last_error) if t is not None), default=None)
