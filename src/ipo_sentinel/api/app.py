"""FastAPI application factory."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import ipo_sentinel
from ipo_sentinel.aggregation.aggregator import Aggregator
from ipo_sentinel.api.deps import AppState, quota_middleware
from ipo_sentinel.api.routes import router
from ipo_sentinel.api.schemas import ErrorResponse
from ipo_sentinel.core.config import SentinelConfig, load_config
from ipo_sentinel.core.exceptions import (
    ConfigError,
    IpoSentinelError,
    QuotaExceededError,
    StorageError,
)
from ipo_sentinel.health.monitor import HealthMonitor
from ipo_sentinel.quota.tracker import QuotaTracker
from ipo_sentinel.scheduler.poller import PollScheduler
from ipo_sentinel.sources.base import SourceAdapter
from ipo_sentinel.sources.registry import build_adapters
from ipo_sentinel.storage.store import create_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown lifecycle."""
    config = app.state._pending_config or load_config()
    store = await create_store(config.storage)

    monitor = HealthMonitor(
        window_hours=config.health.stats_window_hours,
        status_window_hours=config.health.status_window_hours,
        retention_hours=config.health.retention_hours,
    )
    adapters = app.state._pending_adapters
    if adapters is None:
        adapters = build_adapters(config.sources, observer=monitor)
    aggregator = Aggregator(adapters)
    scheduler = PollScheduler(
        aggregator,
        store,
        config=config.scheduler,
        alerts_config=config.alerts,
    )

    app.state.app_state = AppState(
        config=config,
        store=store,
        monitor=monitor,
        aggregator=aggregator,
        scheduler=scheduler,
        quota=QuotaTracker(),
    )

    autostart: asyncio.Task[bool] | None = None
    if config.scheduler.autostart:
        autostart = asyncio.create_task(scheduler.start(), name="ipo-sentinel-autostart")

    yield

    if autostart is not None and not autostart.done():
        await asyncio.wait([autostart])
    await scheduler.stop()
    await scheduler.wait_idle()
    await aggregator.close()
    await store.close()


def create_app(
    config: SentinelConfig | None = None,
    adapters: Mapping[str, SourceAdapter] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``adapters`` replaces the configured source adapters (tests, custom
    providers); the health monitor only sees invocations from adapters that
    were built with it as observer.
    """
    app = FastAPI(
        title="IPO Sentinel API",
        description="Multi-source IPO data reconciliation and adaptive polling",
        version=ipo_sentinel.__version__,
        lifespan=lifespan,
    )

    # Stash construction inputs so lifespan can retrieve them
    app.state._pending_config = config
    app.state._pending_adapters = adapters

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
    )

    app.middleware("http")(quota_middleware)

    app.include_router(router, prefix="/api")

    # Exception handlers
    @app.exception_handler(IpoSentinelError)
    async def sentinel_exception_handler(request: Request, exc: IpoSentinelError):
        status_map = {
            ConfigError: 400,
            QuotaExceededError: 429,
            StorageError: 500,
        }
        status = status_map.get(type(exc), 500)
        if status >= 500:
            logger.error("Request %s failed: %s", request.url.path, exc)
        return JSONResponse(
            status_code=status,
            content=ErrorResponse(error=type(exc).__name__, detail=str(exc)).model_dump(),
        )

    return app
