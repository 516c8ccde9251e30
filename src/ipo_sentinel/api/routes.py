"""FastAPI route definitions for the IPO Sentinel API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request

import ipo_sentinel
from ipo_sentinel.aggregation.aggregator import Aggregator
from ipo_sentinel.api.deps import (
    API_KEY_HEADER,
    get_aggregator,
    get_config,
    get_monitor,
    get_quota,
    get_scheduler,
    get_store,
    resolve_tier,
)
from ipo_sentinel.api.schemas import (
    AlertListResponse,
    ClearAlertsResponse,
    HealthResponse,
    PollResponse,
    QuotaResponse,
    SchedulerActionResponse,
)
from ipo_sentinel.core.config import SentinelConfig
from ipo_sentinel.core.models import (
    AggregationResult,
    ConnectionTest,
    HealthReport,
    OperationKind,
    ReconciledRecord,
    SourceStats,
    TimeSeriesPoint,
)
from ipo_sentinel.health.monitor import HealthMonitor
from ipo_sentinel.quota.tracker import UNLIMITED, QuotaTracker
from ipo_sentinel.scheduler.poller import PollScheduler
from ipo_sentinel.scheduler.state import SchedulerStatus
from ipo_sentinel.storage.store import SERIES_PREMIUM, SERIES_SUBSCRIPTION_TOTAL, SqliteStore

router = APIRouter()


# -- Health --


@router.get("/health", response_model=HealthResponse)
async def health_check(
    store: SqliteStore = Depends(get_store),
    monitor: HealthMonitor = Depends(get_monitor),
    scheduler: PollScheduler = Depends(get_scheduler),
    aggregator: Aggregator = Depends(get_aggregator),
):
    """Service liveness plus a one-word summary of source health."""
    return HealthResponse(
        status="ok",
        version=ipo_sentinel.__version__,
        storage_ok=await store.health_check(),
        scheduler_running=scheduler.running,
        sources_overall=monitor.health_report().overall,
        enabled_sources=aggregator.source_names,
    )


@router.get("/sources/health", response_model=HealthReport)
async def sources_health(monitor: HealthMonitor = Depends(get_monitor)):
    """Per-source status over the last hour and the overall verdict."""
    return monitor.health_report()


@router.get("/sources/stats", response_model=list[SourceStats])
async def sources_stats(
    hours: float = Query(24.0, gt=0, le=24 * 30),
    monitor: HealthMonitor = Depends(get_monitor),
):
    return monitor.source_stats(hours)


@router.post("/sources/test", response_model=list[ConnectionTest])
async def test_sources(
    source: str | None = Query(None, description="Single source; omit to test all"),
    aggregator: Aggregator = Depends(get_aggregator),
):
    """Probe sources with one cheap live request each."""
    if source:
        return [await aggregator.test_connection(source)]
    return await aggregator.test_all_connections()


# -- Offerings --


@router.get("/offerings/{kind}", response_model=AggregationResult)
async def aggregate_offerings(
    kind: OperationKind,
    sources: str | None = Query(None, description="Comma-separated source names"),
    aggregator: Aggregator = Depends(get_aggregator),
):
    """Run one reconciliation pass on demand.

    Zero successful sources still yields a normal envelope; only a source
    selection that matches nothing is an error (400).
    """
    selected = [s for s in sources.split(",") if s.strip()] if sources else None
    return await aggregator.aggregate(kind, selected)


@router.get("/offerings/{key}/latest", response_model=list[ReconciledRecord])
async def latest_offering(key: str, store: SqliteStore = Depends(get_store)):
    records = await store.read_latest_by_key(key.upper())
    if not records:
        raise HTTPException(status_code=404, detail=f"No stored data for '{key.upper()}'")
    return records


@router.get("/offerings/{key}/history", response_model=list[TimeSeriesPoint])
async def offering_history(
    key: str,
    series: str = Query(
        SERIES_SUBSCRIPTION_TOTAL, pattern=f"^({SERIES_SUBSCRIPTION_TOTAL}|{SERIES_PREMIUM})$"
    ),
    limit: int = Query(100, ge=1, le=1000),
    store: SqliteStore = Depends(get_store),
):
    return await store.read_time_series(key.upper(), series, limit)


# -- Scheduler --


@router.get("/scheduler/status", response_model=SchedulerStatus)
async def scheduler_status(scheduler: PollScheduler = Depends(get_scheduler)):
    return scheduler.status()


@router.post("/scheduler/start", response_model=SchedulerActionResponse)
async def scheduler_start(scheduler: PollScheduler = Depends(get_scheduler)):
    """Start polling. Runs the first cycle before responding."""
    changed = await scheduler.start()
    return SchedulerActionResponse(
        changed=changed,
        running=scheduler.running,
        message="Scheduler started" if changed else "Scheduler already running",
    )


@router.post("/scheduler/stop", response_model=SchedulerActionResponse)
async def scheduler_stop(scheduler: PollScheduler = Depends(get_scheduler)):
    changed = await scheduler.stop()
    return SchedulerActionResponse(
        changed=changed,
        running=scheduler.running,
        message="Scheduler stopped" if changed else "Scheduler not running",
    )


@router.post("/scheduler/poll", response_model=PollResponse)
async def scheduler_poll(scheduler: PollScheduler = Depends(get_scheduler)):
    """Run one cycle now, independent of the scheduled cadence."""
    summary = await scheduler.trigger_manual_poll()
    return PollResponse(
        cycle=summary.cycle,
        subscriptions=len(summary.subscriptions),
        premiums=len(summary.premiums),
        alerts=summary.alerts,
        subscription_sources=summary.subscription_sources,
        premium_sources=summary.premium_sources,
        persisted=summary.persisted,
        started_at=summary.started_at,
        finished_at=summary.finished_at,
    )


# -- Alerts --


@router.get("/alerts", response_model=AlertListResponse)
async def list_alerts(
    limit: int = Query(20, ge=1, le=500),
    scheduler: PollScheduler = Depends(get_scheduler),
):
    return AlertListResponse(
        total=len(scheduler.state.alerts),
        items=scheduler.recent_alerts(limit),
    )


@router.delete("/alerts", response_model=ClearAlertsResponse)
async def clear_alerts(scheduler: PollScheduler = Depends(get_scheduler)):
    return ClearAlertsResponse(cleared=scheduler.clear_alerts())


# -- Quota --


@router.get("/quota", response_model=QuotaResponse)
async def quota_status(
    request: Request,
    config: SentinelConfig = Depends(get_config),
    quota: QuotaTracker = Depends(get_quota),
):
    """Quota for the calling credential, before this request is counted."""
    credential = request.headers.get(API_KEY_HEADER)
    if not credential:
        raise HTTPException(status_code=401, detail=f"{API_KEY_HEADER} header required")

    tier = resolve_tier(config, credential)
    decision = quota.check(credential, tier)
    unlimited = decision.limit == UNLIMITED
    return QuotaResponse(
        tier=tier,
        allowed=decision.allowed,
        limit=None if unlimited else decision.limit,
        remaining=None if unlimited else decision.remaining,
        calls_today=quota.usage(credential, tier).calls_today,
        reset_at=decision.reset_at,
    )
