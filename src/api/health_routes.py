"""Health endpoint.

  GET /api/health  probe every dependency; 200 when healthy, 503 otherwise
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

health_router = APIRouter()


@health_router.get("/health")
def health_check(request: Request) -> JSONResponse:
    """Run all probes and return the aggregate report. Never cached."""
    aggregator = request.app.state.health_aggregator
    report = aggregator.check()
    if report.http_status != 200:
        down = [name for name, r in report.services.items() if r.status.value == "down"]
        logger.warning("Health check unhealthy: %s", ", ".join(down))
    return JSONResponse(report.to_dict(), status_code=report.http_status)
