"""
minimux: Recover Middleware
===========================

What:  Turns unexpected exceptions raised below it into InternalError.
How:   AppError passes through untouched; any other Exception is logged with
       its traceback and replaced by InternalError, which the dispatch
       adapter then renders as a 500 JSON body carrying the request ID.

Without this middleware, non-AppError exceptions (a SQLAlchemy
OperationalError, say) propagate to the ASGI server with no JSON body and no
request ID; the session is still closed. Install it outermost so every
handler failure goes through Context.error():

    app.use(recover, ...)
"""

import logging

from minimux.app import Handler
from minimux.context import Context
from minimux.exceptions import AppError, InternalError

logger = logging.getLogger(__name__)


def recover(next_handler: Handler) -> Handler:
    async def handler(ctx: Context) -> None:
        try:
            await next_handler(ctx)
        except AppError:
            raise
        except Exception as exc:
            logger.error(
                "[%s] Unexpected error in %s %s: %s",
                ctx.request_id,
                ctx.request.method,
                ctx.request.url.path,
                exc,
                exc_info=True,
            )
            raise InternalError(context={"exception": type(exc).__name__}) from exc

    return handler
