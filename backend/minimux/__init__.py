"""
minimux: Minimal HTTP Application Shell
=======================================

What: Handlers registered against verb+path pairs, wrapped in middleware,
      dispatched with a per-request Context (session, request/response,
      route params, correlation ID).

Quick start:

    from minimux import App, Context, NotFoundError

    app = App()

    @app.get("/items/:id")
    async def get_item(ctx: Context) -> None:
        item = await ctx.session.get(Item, ctx.uuid_param("id"))
        if item is None:
            raise NotFoundError("item", ctx.param("id"))
        ctx.respond(ItemOut.model_validate(item))
"""

__version__ = "1.0.0"

from minimux.app import App, Handler, Middleware, new  # noqa: E402
from minimux.context import Context  # noqa: E402
from minimux.exceptions import (  # noqa: E402
    AppError,
    ErrorKind,
    InternalError,
    InvalidIDError,
    NotFoundError,
    ValidationFailedError,
)

__all__ = [
    "App",
    "AppError",
    "Context",
    "ErrorKind",
    "Handler",
    "InternalError",
    "InvalidIDError",
    "Middleware",
    "NotFoundError",
    "ValidationFailedError",
    "new",
]
