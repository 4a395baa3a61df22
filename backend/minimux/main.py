"""
minimux: Application Assembly
=============================

What:  Builds the default App (bundled middleware, health route, lifecycle
       hooks) and the ASGI stack served by uvicorn.
How:   create_app() returns a configured App; build_asgi() wraps it in the
       CORS and GZip ASGI middleware; run() starts uvicorn.
Who:   `uvicorn minimux.main:asgi` or the `minimux` console script.

Layers:
    ┌──────────────────────────────────────────────┐
    │ ASGI: CORS → GZip                            │
    │  ┌────────────────────────────────────────┐  │
    │  │ App: route table + Handler middleware  │  │
    │  │   recover → request_logging →          │  │
    │  │   rate_limit → handler                 │  │
    │  └────────────────────────────────────────┘  │
    └──────────────────────────────────────────────┘
"""

import logging
import sys
from typing import Optional

import uvicorn
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from starlette.types import ASGIApp

from minimux import __version__
from minimux.app import App, SessionProvider
from minimux.config import settings
from minimux.middleware.logging import request_logging
from minimux.middleware.rate_limit import rate_limit
from minimux.middleware.recover import recover
from minimux.middleware.request_id import RequestIDLogFilter
from minimux.routes import health

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """
    Configure logging for the whole process.

    Format: %(asctime)s [%(levelname)s] %(name)s [%(request_id)s] %(message)s
    The request ID comes from RequestIDLogFilter ("-" outside a request).
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIDLogFilter())

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    # Quiet chatty third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


async def _log_startup() -> None:
    logger.info("minimux %s ready at http://%s:%d", __version__, settings.server_host, settings.server_port)


async def _dispose_database() -> None:
    from minimux.database import dispose_engine

    logger.info("Shutting down, closing database connections...")
    await dispose_engine()
    logger.info("Shutdown complete.")


def create_app(session_provider: Optional[SessionProvider] = None) -> App:
    """
    Create the default App.

    Pass `session_provider` to swap the database session source (tests do).
    """
    app = App(session_provider=session_provider)

    app.use(
        recover,
        request_logging,
        rate_limit(settings.rate_limit_requests, settings.rate_limit_window),
    )

    health.register(app)

    app.on_startup(_log_startup)
    if session_provider is None:
        app.on_shutdown(_dispose_database)

    return app


def build_asgi(app: App) -> ASGIApp:
    """Wrap the App in the outer ASGI middleware. Outermost is added last."""
    asgi: ASGIApp = GZipMiddleware(app, minimum_size=500)
    asgi = CORSMiddleware(
        asgi,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[settings.request_id_header, "Retry-After"],
    )
    return asgi


def run() -> None:
    """Console entry point: serve the default app with uvicorn."""
    setup_logging()
    uvicorn.run(
        "minimux.main:asgi",
        host=settings.server_host,
        port=settings.server_port,
        log_config=None,
    )


app = create_app()
asgi = build_asgi(app)


if __name__ == "__main__":
    run()
