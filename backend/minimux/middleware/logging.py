"""
minimux: Request Logging Middleware
===================================

What:  One access-log line per handled request.
How:   Wraps the handler, times it, and logs method, path, status, duration
       and correlation ID once the handler (and any inner middleware) is done.

Log Format:
    GET /items/42 404 3.2ms [550e8400-e29b-41d4-a716-446655440000] from 10.0.0.7

Register it after `recover` so the status of recovered failures is logged:

    app.use(recover, request_logging)
"""

import logging
import time
from typing import Optional

from minimux.app import Handler
from minimux.context import STATUS_BY_KIND, Context
from minimux.exceptions import AppError

logger = logging.getLogger("minimux.access")

# Paths too noisy to log (polled every few seconds by load balancers)
SKIP_PATHS = {"/health"}


def _status_of(ctx: Context, err: Optional[BaseException] = None) -> int:
    if isinstance(err, AppError):
        return STATUS_BY_KIND[err.kind]
    if err is not None:
        return 500
    if ctx.response is not None:
        return ctx.response.status_code
    # Nothing written: the adapter answers 204
    return 204


def request_logging(next_handler: Handler) -> Handler:
    """Log each request's outcome and duration."""

    async def handler(ctx: Context) -> None:
        path = ctx.request.url.path
        if path in SKIP_PATHS:
            await next_handler(ctx)
            return

        start_time = time.perf_counter()
        client_ip = ctx.request.client.host if ctx.request.client else "unknown"
        err = None
        try:
            await next_handler(ctx)
        except BaseException as exc:
            err = exc
            raise
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            status = _status_of(ctx, err)

            # 5xx → ERROR, 4xx → WARNING, else INFO
            if status >= 500:
                log_level = logging.ERROR
            elif status >= 400:
                log_level = logging.WARNING
            else:
                log_level = logging.INFO

            logger.log(
                log_level,
                "%s %s %d %.1fms [%s] from %s",
                ctx.request.method,
                path,
                status,
                duration_ms,
                ctx.request_id,
                client_ip,
                extra={
                    "method": ctx.request.method,
                    "path": path,
                    "status": status,
                    "duration_ms": round(duration_ms, 2),
                    "client_ip": client_ip,
                },
            )

    return handler
