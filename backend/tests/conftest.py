"""
minimux: Test Configuration (conftest.py)
=========================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixtures:
    sessions:      Session provider handing out FakeSession objects and
                   counting acquisitions/releases (no real DB needed)
    app:           Bare App wired to `sessions`
    client_for:    Factory for an HTTPX AsyncClient talking to any ASGI app
    make_request:  Factory for raw Starlette requests (Context unit tests)
"""

import os
import tempfile

# Override settings for testing BEFORE any minimux imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(
    tempfile.mkdtemp(prefix="minimux_test_"), "test.db"
)
os.environ["LOG_LEVEL"] = "WARNING"

from contextlib import asynccontextmanager  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from starlette.requests import Request  # noqa: E402

from minimux.app import App  # noqa: E402


class FakeSession:
    """Stand-in for AsyncSession: records close() calls, mocks execute()."""

    def __init__(self):
        self.close_calls = 0
        self.execute = AsyncMock()

    async def close(self):
        self.close_calls += 1


class SessionRecorder:
    """Session provider that remembers every session it handed out."""

    def __init__(self):
        self.sessions = []

    def __call__(self) -> FakeSession:
        session = FakeSession()
        self.sessions.append(session)
        return session

    @property
    def acquired(self) -> int:
        return len(self.sessions)

    @property
    def released(self) -> int:
        return sum(s.close_calls for s in self.sessions)


@pytest.fixture
def sessions():
    return SessionRecorder()


@pytest.fixture
def app(sessions):
    return App(session_provider=sessions)


@pytest.fixture
def client_for():
    """
    Usage:
        async with client_for(app) as client:
            response = await client.get("/items/42")
    """

    @asynccontextmanager
    async def factory(asgi_app):
        transport = ASGITransport(app=asgi_app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client

    return factory


@pytest.fixture
def make_request():
    def factory(method: str = "GET", path: str = "/", body: bytes = b"") -> Request:
        async def receive():
            return {"type": "http.request", "body": body, "more_body": False}

        scope = {
            "type": "http",
            "method": method,
            "path": path,
            "root_path": "",
            "scheme": "http",
            "query_string": b"",
            "headers": [(b"content-type", b"application/json")],
            "client": ("127.0.0.1", 50000),
            "server": ("test", 80),
        }
        return Request(scope, receive)

    return factory
