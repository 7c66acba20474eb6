"""FastAPI server for the user admin dashboard."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.dashboard_routes import dashboard_router
from src.api.health_routes import health_router
from src.config import settings
from src.dashboard.client import ListingClient
from src.dashboard.controller import RefreshController
from src.health.cache import build_cache
from src.health.engine import build_default_aggregator
from src.notifications import NotificationCenter

logger = logging.getLogger(__name__)


def build_refresh_controller(notifications: NotificationCenter) -> RefreshController:
    client = ListingClient(
        base_url=settings.api_base_url,
        path=settings.listing_path,
        token=settings.listing_token,
        timeout=settings.fetch_timeout,
    )
    return RefreshController(
        client,
        recent_limit=settings.recent_users_limit,
        max_attempts=settings.max_retry_attempts,
        retry_backoff=settings.retry_backoff,
        auto_refresh_interval=settings.auto_refresh_interval if settings.auto_refresh_enabled else None,
        on_error=notifications.notify,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize shared resources on startup."""
    # Health probes
    cache = build_cache(settings.cache_url, socket_timeout=settings.health_probe_timeout)
    app.state.cache = cache
    aggregator = build_default_aggregator(settings, cache)
    app.state.health_aggregator = aggregator
    logger.info("Health aggregator initialised: %s", ", ".join(aggregator.probes))

    # Notifications
    notifications = NotificationCenter(
        duration=settings.notification_duration,
        enabled=settings.notifications_enabled,
        webhook_url=settings.discord_webhook_url,
    )
    app.state.notifications = notifications

    # Dashboard refresh
    controller = build_refresh_controller(notifications)
    app.state.refresh_controller = controller
    try:
        await controller.start()
    except Exception:
        logger.exception("Dashboard auto-refresh failed to start")

    yield

    # Shutdown
    await controller.stop()
    await notifications.close()
    if hasattr(cache, "close"):
        cache.close()


def create_app() -> FastAPI:
    app = FastAPI(
        title=f"{settings.app_name} - Dashboard API",
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router, prefix="/api")
    app.include_router(dashboard_router, prefix="/api")

    return app


app = create_app()
