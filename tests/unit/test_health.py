"""Tests for the source health monitor."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from ipo_sentinel.core.models import HealthStatus, InvocationRecord, InvocationStatus, OperationKind
from ipo_sentinel.health.monitor import HealthMonitor, classify_overall, classify_source

NOW = datetime(2025, 1, 6, 12, 0, tzinfo=UTC)


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> Clock:
    return Clock(NOW)


@pytest.fixture
def monitor(clock) -> HealthMonitor:
    return HealthMonitor(clock=clock)


def invocation(
    source: str,
    status: InvocationStatus = InvocationStatus.SUCCESS,
    elapsed_ms: int = 100,
    age: timedelta = timedelta(minutes=5),
) -> InvocationRecord:
    return InvocationRecord(
        source=source,
        kind=OperationKind.LISTINGS,
        status=status,
        records=3 if status == InvocationStatus.SUCCESS else 0,
        elapsed_ms=elapsed_ms,
        error=None if status == InvocationStatus.SUCCESS else "failed",
        recorded_at=NOW - age,
    )


def record_many(monitor: HealthMonitor, source: str, successes: int, failures: int) -> None:
    for _ in range(successes):
        monitor.record(invocation(source))
    for _ in range(failures):
        monitor.record(invocation(source, InvocationStatus.ERROR))


class TestSourceStats:
    def test_counts_and_rates(self, monitor):
        monitor.record(invocation("nse", elapsed_ms=100, age=timedelta(minutes=10)))
        monitor.record(invocation("nse", elapsed_ms=201, age=timedelta(minutes=5)))
        monitor.record(invocation("nse", InvocationStatus.TIMEOUT, elapsed_ms=300))

        (stats,) = monitor.source_stats()
        assert stats.source == "nse"
        assert stats.calls == 3
        assert stats.successes == 2
        assert stats.errors == 1
        assert stats.avg_latency_ms == 200
        assert stats.success_rate == 67
        assert stats.last_success == NOW - timedelta(minutes=5)
        assert stats.last_error == NOW - timedelta(minutes=5)

    def test_window_excludes_old_entries(self, monitor):
        monitor.record(invocation("nse", age=timedelta(hours=30)))
        monitor.record(invocation("groww", age=timedelta(hours=2)))
        assert [s.source for s in monitor.source_stats()] == ["groww"]
        assert monitor.source_stats(hours=1) == []

    def test_entries_past_retention_are_pruned(self, clock):
        monitor = HealthMonitor(retention_hours=48, clock=clock)
        monitor.record(invocation("nse", age=timedelta(hours=50)))
        monitor.record(invocation("nse", age=timedelta(hours=47)))
        assert len(monitor) == 1

    def test_burst_never_evicts_entries_inside_window(self, clock):
        monitor = HealthMonitor(clock=clock)
        monitor.record(invocation("nse", age=timedelta(minutes=30)))
        for _ in range(20_000):
            monitor.record(invocation("groww"))

        statuses = {s.name: s.status for s in monitor.health_report().sources}
        assert statuses["nse"] == HealthStatus.HEALTHY
        assert len(monitor) == 20_001


class TestClassification:
    @pytest.mark.parametrize(
        "successes, failures, expected",
        [
            (8, 2, HealthStatus.HEALTHY),
            (10, 0, HealthStatus.HEALTHY),
            (7, 3, HealthStatus.DEGRADED),
            (5, 5, HealthStatus.DEGRADED),
            (4, 6, HealthStatus.DOWN),
            (0, 3, HealthStatus.DOWN),
        ],
    )
    def test_thresholds(self, monitor, successes, failures, expected):
        record_many(monitor, "nse", successes, failures)
        (stats,) = monitor.source_stats()
        assert classify_source(stats) == expected

    def test_zero_calls_is_down(self):
        assert classify_source(None) == HealthStatus.DOWN

    @pytest.mark.parametrize(
        "statuses, expected",
        [
            ([HealthStatus.HEALTHY] * 3 + [HealthStatus.DOWN], HealthStatus.HEALTHY),
            ([HealthStatus.HEALTHY] * 2 + [HealthStatus.DEGRADED] * 2, HealthStatus.DEGRADED),
            ([HealthStatus.HEALTHY] + [HealthStatus.DOWN] * 3, HealthStatus.DEGRADED),
            ([HealthStatus.DEGRADED] * 4, HealthStatus.DOWN),
            ([], HealthStatus.DOWN),
        ],
    )
    def test_overall(self, statuses, expected):
        assert classify_overall(statuses) == expected


class TestHealthReport:
    def test_fixed_membership(self, monitor):
        report = monitor.health_report()
        assert [s.name for s in report.sources] == ["chittorgarh", "groww", "investorgain", "nse"]
        assert all(s.status == HealthStatus.DOWN for s in report.sources)
        assert all(s.last_check is None for s in report.sources)
        assert report.overall == HealthStatus.DOWN
        assert report.generated_at == NOW

    def test_uses_status_window(self, monitor):
        # Healthy an hour and a half ago, failing since
        for _ in range(10):
            monitor.record(invocation("nse", age=timedelta(minutes=90)))
        monitor.record(invocation("nse", InvocationStatus.ERROR, age=timedelta(minutes=10)))

        nse = next(s for s in monitor.health_report().sources if s.name == "nse")
        assert nse.status == HealthStatus.DOWN
        assert nse.last_check == NOW - timedelta(minutes=10)

    def test_last_check_is_most_recent_event(self, monitor):
        monitor.record(invocation("nse", age=timedelta(minutes=40)))
        monitor.record(invocation("nse", InvocationStatus.ERROR, age=timedelta(minutes=2)))

        nse = next(s for s in monitor.health_report().sources if s.name == "nse")
        assert nse.last_check == NOW - timedelta(minutes=2)

    def test_overall_healthy_with_three_sources(self, monitor):
        for source in ("nse", "groww", "chittorgarh"):
            record_many(monitor, source, 9, 1)
        record_many(monitor, "investorgain", 1, 1)

        report = monitor.health_report()
        statuses = {s.name: s.status for s in report.sources}
        assert statuses["investorgain"] == HealthStatus.DEGRADED
        assert report.overall == HealthStatus.HEALTHY

    def test_custom_members(self, clock):
        monitor = HealthMonitor(clock=clock, members=["x"])
        assert [s.name for s in monitor.health_report().sources] == ["x"]


class TestRecent:
    def test_newest_first_and_filtered(self, monitor):
        monitor.record(invocation("nse", age=timedelta(minutes=3)))
        monitor.record(invocation("groww", age=timedelta(minutes=2)))
        monitor.record(invocation("nse", InvocationStatus.ERROR, age=timedelta(minutes=1)))

        recent = monitor.recent()
        assert [(r.source, r.status) for r in recent] == [
            ("nse", InvocationStatus.ERROR),
            ("groww", InvocationStatus.SUCCESS),
            ("nse", InvocationStatus.SUCCESS),
        ]
        assert [r.source for r in monitor.recent(source="nse")] == ["nse", "nse"]
        assert len(monitor.recent(limit=1)) == 1
