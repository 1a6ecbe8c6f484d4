"""
Best Shot Backend — Health Check Route
========================================

What:  Liveness/readiness probe for Docker and load balancers.

Status levels:
    healthy:    database reachable and live tally aggregator running (200)
    degraded:   database reachable, aggregator stopped; votes still work but
                badges go stale (200)
    unhealthy:  database unreachable (503)
"""

import logging
import time

from fastapi import APIRouter, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from bestshot import __version__
from bestshot import database
from bestshot.schemas.common import HealthResponse
from bestshot.services.tally_service import tally_aggregator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(response: Response) -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        async with database.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    tally_status = "running" if tally_aggregator.running else "stopped"
    if tally_status == "stopped" and overall == "healthy":
        overall = "degraded"

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        tally=tally_status,
        tally_version=tally_aggregator.snapshot().version,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
