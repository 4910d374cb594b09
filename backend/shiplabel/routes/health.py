"""
ShipLabel Backend - Health Check Route
========================================

What:  Health check endpoint for monitoring and container probes.
How:   Reports whether the scratch store can take new barcode artifacts.
Who:   Docker health checks, load balancers, monitoring.

Status levels:
    healthy:   scratch storage writable (HTTP 200)
    unhealthy: scratch storage missing or read-only (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from shiplabel import __version__
from shiplabel.schemas.label import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(request: Request):
    store = request.app.state.label_service.store
    is_writable = getattr(store, "is_writable", None)
    writable = is_writable() if callable(is_writable) else True

    body = HealthResponse(
        status="healthy" if writable else "unhealthy",
        version=__version__,
        scratch_dir="writable" if writable else "unavailable",
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    if not writable:
        logger.warning("Health check: scratch storage %s is not writable", store.describe())
    return JSONResponse(status_code=200 if writable else 503, content=body.model_dump())
