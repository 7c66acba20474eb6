"""Dashboard endpoints consumed by the admin UI.

Endpoints:
  GET  /api/dashboard                snapshot, refresh state, error, staleness
  POST /api/dashboard/refresh        run one refresh (dropped if one is in flight)
  GET  /api/dashboard/notification   active notification banner, if any
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request

from src.config import settings

logger = logging.getLogger(__name__)

dashboard_router = APIRouter()


@dashboard_router.get("/dashboard")
def get_dashboard(request: Request) -> dict[str, Any]:
    controller = request.app.state.refresh_controller
    return controller.state.to_dict(controller.clock(), settings.stale_after_ms)


@dashboard_router.post("/dashboard/refresh")
async def refresh_dashboard(request: Request) -> dict[str, Any]:
    """Explicit user refresh. ``accepted`` is false when a refresh was already running."""
    controller = request.app.state.refresh_controller
    accepted = await controller.refresh()
    return {
        "accepted": accepted,
        **controller.state.to_dict(controller.clock(), settings.stale_after_ms),
    }


@dashboard_router.get("/dashboard/notification")
def get_notification(request: Request) -> dict[str, Any]:
    center = request.app.state.notifications
    current = center.current()
    return {"notification": current.to_dict() if current else None}
