"""API-specific request/response schemas (Pydantic v2)."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from ipo_sentinel.core.models import AlertEvent, HealthStatus, Tier


# -- Error --


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    error: str
    detail: str | None = None


# -- Health --


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    status: str = "ok"
    version: str
    storage_ok: bool
    scheduler_running: bool
    sources_overall: HealthStatus
    enabled_sources: list[str]


# -- Scheduler --


class SchedulerActionResponse(BaseModel):
    """Response for POST /api/scheduler/start and /stop."""

    changed: bool
    running: bool
    message: str


class PollResponse(BaseModel):
    """Response for POST /api/scheduler/poll."""

    cycle: int
    subscriptions: int
    premiums: int
    alerts: list[AlertEvent]
    subscription_sources: int
    premium_sources: int
    persisted: int
    started_at: datetime
    finished_at: datetime


# -- Alerts --


class AlertListResponse(BaseModel):
    total: int
    items: list[AlertEvent]


class ClearAlertsResponse(BaseModel):
    cleared: int


# -- Quota --


class QuotaResponse(BaseModel):
    """Response for GET /api/quota."""

    tier: Tier
    allowed: bool
    limit: int | None
    remaining: int | None
    calls_today: int
    reset_at: datetime
