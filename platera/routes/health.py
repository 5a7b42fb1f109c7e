"""
Platera Backend — Health Check Route
====================================

What:  Health check endpoint for monitoring and load balancers.
How:   Pings the database and the identity provider.

Status levels:
    - healthy:   database and identity provider reachable
    - degraded:  identity provider down or circuit open; anonymous reads still work
    - unhealthy: database unreachable
"""

import logging
import time

from fastapi import APIRouter, Request

from platera import __version__
from platera.schemas.common import HealthResponse
from platera.services.clerk_service import CircuitBreaker

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(request: Request) -> HealthResponse:
    db_status = "connected"
    identity_status = "available"
    overall = "healthy"

    # ── Check Database ────────────────────────────────────────────────────
    if not await request.app.state.database.ping():
        db_status = "disconnected"
        overall = "unhealthy"

    # ── Check Identity Provider ───────────────────────────────────────────
    identity = request.app.state.identity
    try:
        breaker = getattr(identity, "circuit_breaker", None)
        if breaker is not None and breaker.state == CircuitBreaker.OPEN:
            identity_status = "circuit_open"
        elif not await identity.health_check():
            identity_status = "unavailable"
    except Exception as e:
        identity_status = "unavailable"
        logger.warning("Health check: identity provider unreachable: %s", str(e))

    if identity_status != "available" and overall != "unhealthy":
        overall = "degraded"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        identity=identity_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
