"""
minimux: Rate Limiting Middleware
=================================

What:  Per-IP sliding window rate limiter.
How:   Tracks request timestamps per client IP in memory. Requests beyond the
       limit inside the window are answered with 429 and a Retry-After header
       without reaching the inner handlers.

Algorithm: Sliding Window Counter
    1. Each IP gets a list of request timestamps
    2. On each request, remove timestamps older than the window
    3. If remaining count >= limit, reject with 429
    4. Otherwise, add current timestamp and allow through

State is per process. Multi-worker deployments need a shared store.
"""

import logging
import time
from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Optional

from minimux.app import Handler, Middleware
from minimux.config import settings
from minimux.context import Context
from minimux.schemas import ErrorResponse

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDED_PATHS = frozenset({"/health"})


class SlidingWindowLimiter:
    """Timestamp bookkeeping behind rate_limit(); usable on its own."""

    def __init__(
        self,
        max_requests: int,
        window: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._hits = 0

    def check(self, key: str) -> Optional[int]:
        """
        Record a request for `key`.

        Returns None when allowed, or the seconds to wait before retrying.
        """
        now = self._clock()
        window_start = now - self.window

        timestamps = [ts for ts in self._requests[key] if ts > window_start]
        self._requests[key] = timestamps

        if len(timestamps) >= self.max_requests:
            return int(timestamps[0] + self.window - now) + 1

        timestamps.append(now)

        # Drop idle keys every 1000 allowed requests
        self._hits += 1
        if self._hits % 1000 == 0:
            self._cleanup(window_start)
        return None

    def _cleanup(self, window_start: float) -> None:
        inactive = [
            key for key, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] <= window_start
        ]
        for key in inactive:
            del self._requests[key]

        if inactive:
            logger.debug("Cleaned up %d inactive rate limit entries", len(inactive))


def rate_limit(
    max_requests: Optional[int] = None,
    window: Optional[int] = None,
    excluded_paths: Iterable[str] = DEFAULT_EXCLUDED_PATHS,
    limiter: Optional[SlidingWindowLimiter] = None,
) -> Middleware:
    """
    Build a rate limiting middleware.

    Limits default to settings.rate_limit_requests per settings.rate_limit_window seconds.
    """
    if limiter is None:
        limiter = SlidingWindowLimiter(
            max_requests=max_requests if max_requests is not None else settings.rate_limit_requests,
            window=window if window is not None else settings.rate_limit_window,
        )
    excluded = frozenset(excluded_paths)

    def middleware(next_handler: Handler) -> Handler:
        async def handler(ctx: Context) -> None:
            if ctx.request.url.path in excluded:
                await next_handler(ctx)
                return

            client_ip = ctx.request.client.host if ctx.request.client else "unknown"
            retry_after = limiter.check(client_ip)
            if retry_after is None:
                await next_handler(ctx)
                return

            logger.warning(
                "[%s] Rate limit exceeded for IP %s: %d requests in %ss window",
                ctx.request_id,
                client_ip,
                limiter.max_requests,
                limiter.window,
            )
            body = ErrorResponse(
                error="rate_limit_exceeded",
                message=f"Too many requests. Please wait {retry_after} seconds before retrying.",
                details={"retry_after": retry_after},
                request_id=ctx.request_id,
            )
            response = ctx.respond(body.model_dump(), status_code=429)
            response.headers["Retry-After"] = str(retry_after)

        return handler

    return middleware
