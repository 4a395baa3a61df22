"""
minimux: Application, Middleware Chain and Dispatch Adapter
===========================================================

What:  The entrypoint applications build on: register Handlers against
       verb+path pairs, wrap them in Middleware, serve them over ASGI.
How:   App composes a RouteTable for path matching. For every registered
       route it stores a small adapter closure that, per request, acquires a
       session, builds a Context, runs the middleware-wrapped Handler,
       translates a raised AppError through Context.error() and closes the
       session on every exit path.

Request Flow:
    ASGI http scope
      → RouteTable.match(verb, path)
      → adapter: Context(session, request, params, request_id)
      → middleware[0] → middleware[1] → ... → handler
      → AppError? → ctx.error(err)
      → session.close()  (always)
      → response + X-Request-ID header

Registration happens once at startup. After serving begins the App is
only read, so concurrent requests share it without locking.
"""

import logging
import traceback
from typing import Awaitable, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import Receive, Scope, Send
from starlette.websockets import WebSocketClose

from minimux.config import settings
from minimux.context import Context
from minimux.exceptions import AppError
from minimux.middleware.request_id import new_request_id, request_id_var
from minimux.routing import Endpoint, RouteTable, StarletteRouteTable
from minimux.schemas import ErrorResponse

logger = logging.getLogger(__name__)

# A Handler processes one request through its Context. Returning normally is
# success; raising an AppError is a domain failure.
Handler = Callable[[Context], Awaitable[None]]

# A Middleware wraps a Handler to add behaviour around it.
Middleware = Callable[[Handler], Handler]

SessionProvider = Callable[[], AsyncSession]
LifecycleHook = Callable[[], Awaitable[None]]


class App:
    """
    Router wrapper plus middleware chain.

    Args:
        route_table:       Path matcher; defaults to StarletteRouteTable.
        session_provider:  Zero-arg callable returning a closable session;
                           defaults to minimux.database.get_session.
    """

    def __init__(
        self,
        route_table: Optional[RouteTable] = None,
        session_provider: Optional[SessionProvider] = None,
    ):
        if session_provider is None:
            # Imported here: importing minimux.database creates the engine.
            from minimux.database import get_session
            session_provider = get_session

        self.routes: RouteTable = route_table if route_table is not None else StarletteRouteTable()
        self.session_provider = session_provider
        self._middleware: List[Middleware] = []
        self._on_startup: List[LifecycleHook] = []
        self._on_shutdown: List[LifecycleHook] = []

    # ── Registration ──────────────────────────────────────────────────────

    def use(self, *middleware: Middleware) -> "App":
        """Append middleware to the chain. Returns the App for chaining."""
        self._middleware.extend(middleware)
        return self

    @property
    def middleware(self) -> List[Middleware]:
        return list(self._middleware)

    def wrap(self, handler: Handler) -> Handler:
        """Nest `handler` in all middleware, first-registered outermost."""
        for mw in reversed(self._middleware):
            handler = mw(handler)
        return handler

    def handle(self, verb: str, path: str, handler: Handler) -> None:
        """
        Mount `handler` for the verb and path pair.

        The middleware chain is resolved per request, so middleware added
        with use() after this call still applies to this route.
        """
        self.routes.register_route(verb.upper(), path, self._adapter(handler))
        logger.debug("Registered %s %s -> %s", verb.upper(), path, getattr(handler, "__name__", handler))

    def route(self, verb: str, path: str) -> Callable[[Handler], Handler]:
        """Decorator form of handle()."""
        def decorator(handler: Handler) -> Handler:
            self.handle(verb, path, handler)
            return handler
        return decorator

    def get(self, path: str) -> Callable[[Handler], Handler]:
        return self.route("GET", path)

    def post(self, path: str) -> Callable[[Handler], Handler]:
        return self.route("POST", path)

    def put(self, path: str) -> Callable[[Handler], Handler]:
        return self.route("PUT", path)

    def patch(self, path: str) -> Callable[[Handler], Handler]:
        return self.route("PATCH", path)

    def delete(self, path: str) -> Callable[[Handler], Handler]:
        return self.route("DELETE", path)

    def on_startup(self, hook: LifecycleHook) -> LifecycleHook:
        self._on_startup.append(hook)
        return hook

    def on_shutdown(self, hook: LifecycleHook) -> LifecycleHook:
        self._on_shutdown.append(hook)
        return hook

    # ── Dispatch ──────────────────────────────────────────────────────────

    def _adapter(self, handler: Handler) -> Endpoint:
        """Bridge the route table's endpoint signature to a Handler."""

        async def endpoint(request: Request, params: Dict[str, str]) -> Response:
            ctx = Context(
                session=self.session_provider(),
                request=request,
                params=params,
                request_id=new_request_id(),
            )
            token = request_id_var.set(ctx.request_id)
            try:
                try:
                    await self.wrap(handler)(ctx)
                except AppError as err:
                    ctx.error(err)
            finally:
                try:
                    await ctx.session.close()
                finally:
                    request_id_var.reset(token)

            response = ctx.response if ctx.response is not None else Response(status_code=204)
            response.headers[settings.request_id_header] = ctx.request_id
            return response

        return endpoint

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "lifespan":
            await self._lifespan(receive, send)
            return
        if scope["type"] == "websocket":
            await WebSocketClose()(scope, receive, send)
            return
        if scope["type"] != "http":
            raise RuntimeError(f"Unsupported ASGI scope type: {scope['type']!r}")

        match = self.routes.match(scope["method"], scope["path"])
        if match is not None and match.endpoint is not None:
            scope["path_params"] = match.params
            response = await match.endpoint(Request(scope, receive), match.params)
        else:
            # Unmatched requests never reach a Context but still carry an ID
            request_id = new_request_id()
            if match is None:
                response = _error_response(404, "not_found", "The requested path was not found", request_id)
            else:
                response = _error_response(405, "method_not_allowed", "Method not allowed for this path", request_id)
                response.headers["Allow"] = ", ".join(match.allowed)
            response.headers[settings.request_id_header] = request_id

        await response(scope, receive, send)

    async def _lifespan(self, receive: Receive, send: Send) -> None:
        await receive()  # lifespan.startup
        try:
            for hook in self._on_startup:
                await hook()
        except BaseException:
            await send({"type": "lifespan.startup.failed", "message": traceback.format_exc()})
            raise
        await send({"type": "lifespan.startup.complete"})

        await receive()  # lifespan.shutdown
        try:
            for hook in self._on_shutdown:
                await hook()
        except BaseException:
            await send({"type": "lifespan.shutdown.failed", "message": traceback.format_exc()})
            raise
        await send({"type": "lifespan.shutdown.complete"})


def new(
    route_table: Optional[RouteTable] = None,
    session_provider: Optional[SessionProvider] = None,
) -> App:
    """Create an App that handles a set of routes for the application."""
    return App(route_table=route_table, session_provider=session_provider)


def _error_response(status_code: int, error: str, message: str, request_id: str) -> JSONResponse:
    body = ErrorResponse(error=error, message=message, request_id=request_id)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))
