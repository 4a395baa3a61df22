"""
minimux: Health Check Route
===========================

What:  GET /health for monitoring and load balancer checks.
How:   Runs SELECT 1 on the request's own session. A reachable database
       answers 200 "healthy"; otherwise 503 "unhealthy".
"""

import logging
import time

from sqlalchemy import text

from minimux import __version__
from minimux.app import App
from minimux.context import Context
from minimux.schemas import HealthResponse

logger = logging.getLogger(__name__)

_start_time = time.time()


async def health_check(ctx: Context) -> None:
    db_status = "connected"
    overall = "healthy"

    try:
        await ctx.session.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    ctx.respond(
        HealthResponse(
            status=overall,
            version=__version__,
            database=db_status,
            uptime_seconds=round(time.time() - _start_time, 2),
        ),
        status_code=200 if overall == "healthy" else 503,
    )


def register(app: App) -> None:
    app.handle("GET", "/health", health_check)
