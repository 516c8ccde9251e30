"""Dependency injection and quota middleware for FastAPI routes."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Request
from fastapi.responses import JSONResponse, Response

from ipo_sentinel.aggregation.aggregator import Aggregator
from ipo_sentinel.core.config import SentinelConfig
from ipo_sentinel.core.exceptions import QuotaExceededError
from ipo_sentinel.core.models import QuotaDecision, Tier
from ipo_sentinel.health.monitor import HealthMonitor
from ipo_sentinel.quota.tracker import UNLIMITED, QuotaTracker
from ipo_sentinel.scheduler.poller import PollScheduler
from ipo_sentinel.storage.store import SqliteStore

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"


@dataclass
class AppState:
    """Shared application state, attached to app.state during lifespan."""

    config: SentinelConfig
    store: SqliteStore
    monitor: HealthMonitor
    aggregator: Aggregator
    scheduler: PollScheduler
    quota: QuotaTracker


def get_app_state(request: Request) -> AppState:
    """Dependency: retrieve AppState from the request."""
    return request.app.state.app_state


def get_config(request: Request) -> SentinelConfig:
    return request.app.state.app_state.config


def get_store(request: Request) -> SqliteStore:
    return request.app.state.app_state.store


def get_monitor(request: Request) -> HealthMonitor:
    return request.app.state.app_state.monitor


def get_aggregator(request: Request) -> Aggregator:
    return request.app.state.app_state.aggregator


def get_scheduler(request: Request) -> PollScheduler:
    return request.app.state.app_state.scheduler


def get_quota(request: Request) -> QuotaTracker:
    return request.app.state.app_state.quota


def resolve_tier(config: SentinelConfig, credential: str) -> Tier:
    """Tier configured for ``credential``; unconfigured credentials are free."""
    return config.quota.keys.get(credential, Tier.FREE)


def rate_limit_headers(decision: QuotaDecision) -> dict[str, str]:
    unlimited = decision.limit == UNLIMITED
    return {
        "X-RateLimit-Limit": "unlimited" if unlimited else str(decision.limit),
        "X-RateLimit-Remaining": "unlimited" if unlimited else str(decision.remaining),
        "X-RateLimit-Reset": decision.reset_at.isoformat(),
    }


EXEMPT_PATHS = {"/api/health"}


async def quota_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware: enforce the daily quota for requests carrying X-API-Key.

    Every completed credentialed request counts toward usage, including the
    429 sent when the quota is already exhausted.
    """
    credential = request.headers.get(API_KEY_HEADER)
    if not credential or request.url.path in EXEMPT_PATHS:
        return await call_next(request)

    app_state: AppState = request.app.state.app_state
    tier = resolve_tier(app_state.config, credential)
    decision = app_state.quota.check(credential, tier)

    response: Response
    try:
        if decision.allowed:
            response = await call_next(request)
        else:
            exc = QuotaExceededError(
                "Daily request quota exhausted. Upgrade your tier for more calls.",
                context={
                    "credential": credential[:6],
                    "tier": str(tier),
                    "reset_at": decision.reset_at.isoformat(),
                },
            )
            logger.info("Quota exhausted for %s… (%s tier)", credential[:6], tier)
            response = JSONResponse(
                status_code=429,
                content={
                    "error": type(exc).__name__,
                    "detail": str(exc),
                    "limit": decision.limit,
                    **exc.context,
                },
            )
    finally:
        app_state.quota.record_usage(credential, tier)

    response.headers.update(rate_limit_headers(decision))
    return response
