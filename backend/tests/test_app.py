"""
minimux: App Dispatch Tests
===========================

What:  Middleware composition order, session lifecycle, correlation IDs and
       the route-level behaviour of App.
How:   Requests go through httpx's ASGITransport straight into the App; the
       session provider is the counting fake from conftest.
"""

from unittest.mock import patch

import pytest

from minimux.app import App, new
from minimux.context import Context
from minimux.exceptions import NotFoundError, ValidationFailedError
from minimux.middleware.request_id import request_id_var


def tracing(name, events):
    """Middleware that records entry and exit into `events`."""

    def middleware(next_handler):
        async def handler(ctx):
            events.append(f"{name} in")
            try:
                await next_handler(ctx)
            finally:
                events.append(f"{name} out")
        return handler

    return middleware


class TestComposition:
    """Tests for use() and wrap()."""

    def test_use_returns_app_for_chaining(self, app):
        events = []
        assert app.use(tracing("A", events)) is app
        assert app.use(tracing("B", events), tracing("C", events)) is app
        assert len(app.middleware) == 3

    def test_wrap_without_middleware_returns_handler(self, app):
        async def handler(ctx):
            pass

        assert app.wrap(handler) is handler

    def test_wrap_has_no_side_effects_until_invoked(self, app):
        events = []
        app.use(tracing("A", events), tracing("B", events))

        async def handler(ctx):
            events.append("handler")

        app.wrap(handler)
        assert events == []

    @pytest.mark.asyncio
    async def test_middleware_runs_in_registration_order(self, app):
        events = []
        app.use(tracing("A", events))
        app.use(tracing("B", events))
        app.use(tracing("C", events))

        async def handler(ctx):
            events.append("handler")

        await app.wrap(handler)(object())

        assert events == ["A in", "B in", "C in", "handler", "C out", "B out", "A out"]

    def test_new_builds_app(self, sessions):
        built = new(session_provider=sessions)
        assert isinstance(built, App)
        assert built.session_provider is sessions


class TestDispatch:
    """Tests for the per-request adapter."""

    @pytest.mark.asyncio
    async def test_handler_receives_context(self, app, sessions, client_for):
        seen = {}

        async def handler(ctx: Context):
            seen["params"] = ctx.params
            seen["session"] = ctx.session
            seen["method"] = ctx.request.method
            ctx.respond({"id": ctx.param("id")})

        app.handle("GET", "/items/:id", handler)

        async with client_for(app) as client:
            response = await client.get("/items/42")

        assert response.status_code == 200
        assert response.json() == {"id": "42"}
        assert seen["params"] == {"id": "42"}
        assert seen["session"] is sessions.sessions[0]
        assert seen["method"] == "GET"

    @pytest.mark.asyncio
    async def test_session_released_once_on_success(self, app, sessions, client_for):
        async def handler(ctx):
            ctx.respond({"ok": True})

        app.handle("GET", "/ok", handler)

        async with client_for(app) as client:
            await client.get("/ok")

        assert sessions.acquired == 1
        assert sessions.released == 1

    @pytest.mark.asyncio
    async def test_session_released_once_on_app_error(self, app, sessions, client_for):
        async def handler(ctx):
            raise ValidationFailedError(field="name")

        app.handle("POST", "/items", handler)

        async with client_for(app) as client:
            response = await client.post("/items")

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"
        assert sessions.acquired == 1
        assert sessions.released == 1

    @pytest.mark.asyncio
    async def test_session_released_once_on_unexpected_exception(self, app, sessions, client_for):
        async def handler(ctx):
            raise RuntimeError("boom")

        app.handle("GET", "/boom", handler)

        async with client_for(app) as client:
            with pytest.raises(RuntimeError, match="boom"):
                await client.get("/boom")

        assert sessions.acquired == 1
        assert sessions.released == 1

    @pytest.mark.asyncio
    async def test_each_request_gets_distinct_request_id(self, app, client_for):
        seen = []

        async def handler(ctx):
            seen.append(ctx.request_id)

        app.handle("GET", "/ping", handler)

        async with client_for(app) as client:
            responses = [await client.get("/ping") for _ in range(25)]

        header_ids = [r.headers["X-Request-ID"] for r in responses]
        assert header_ids == seen
        assert len(set(seen)) == 25

    @pytest.mark.asyncio
    async def test_request_id_reset_when_session_close_fails(self, make_request):
        class BrokenSession:
            async def close(self):
                raise RuntimeError("connection lost")

        app = App(session_provider=BrokenSession)
        seen = []

        async def handler(ctx):
            seen.append(request_id_var.get())

        app.handle("GET", "/ping", handler)
        match = app.routes.match("GET", "/ping")

        with pytest.raises(RuntimeError, match="connection lost"):
            await match.endpoint(make_request(path="/ping"), match.params)

        assert seen and seen[0]
        assert request_id_var.get() == ""

    @pytest.mark.asyncio
    async def test_handler_without_response_answers_204(self, app, client_for):
        async def handler(ctx):
            pass

        app.handle("DELETE", "/items/:id", handler)

        async with client_for(app) as client:
            response = await client.delete("/items/1")

        assert response.status_code == 204
        assert response.content == b""

    @pytest.mark.asyncio
    async def test_middleware_added_after_handle_applies(self, app, client_for):
        events = []

        async def handler(ctx):
            events.append("handler")

        app.handle("GET", "/late", handler)
        app.use(tracing("late", events))

        async with client_for(app) as client:
            await client.get("/late")

        assert events == ["late in", "handler", "late out"]

    @pytest.mark.asyncio
    async def test_decorator_registration(self, app, client_for):
        @app.post("/things")
        async def create_thing(ctx):
            ctx.respond({"created": True}, status_code=201)

        async with client_for(app) as client:
            response = await client.post("/things")

        assert response.status_code == 201
        assert response.json() == {"created": True}


class TestUnmatched:
    """Requests the route table cannot match never acquire a session."""

    @pytest.mark.asyncio
    async def test_unknown_path_is_404(self, app, sessions, client_for):
        async with client_for(app) as client:
            response = await client.get("/nowhere")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"
        assert response.json()["request_id"] == response.headers["X-Request-ID"]
        assert sessions.acquired == 0

    @pytest.mark.asyncio
    async def test_wrong_verb_is_405_with_allow_header(self, app, sessions, client_for):
        async def handler(ctx):
            pass

        app.handle("GET", "/items/:id", handler)

        async with client_for(app) as client:
            response = await client.put("/items/7")

        assert response.status_code == 405
        assert "GET" in response.headers["Allow"]
        assert response.headers["X-Request-ID"]
        assert sessions.acquired == 0

    @pytest.mark.asyncio
    async def test_unmatched_requests_get_distinct_ids(self, app, client_for):
        async with client_for(app) as client:
            first = await client.get("/nowhere")
            second = await client.get("/nowhere")

        assert first.headers["X-Request-ID"] != second.headers["X-Request-ID"]


class TestScenario:
    """Logging + Auth middleware around a handler that finds nothing."""

    @pytest.mark.asyncio
    async def test_not_found_flow(self, app, sessions, client_for):
        events = []
        app.use(tracing("Logging", events)).use(tracing("Auth", events))

        async def get_item(ctx):
            events.append("handler")
            raise NotFoundError("item", ctx.param("id"))

        app.handle("GET", "/items/:id", get_item)

        with patch.object(Context, "error", autospec=True, side_effect=Context.error) as error:
            async with client_for(app) as client:
                response = await client.get("/items/42")

        assert events == ["Logging in", "Auth in", "handler", "Auth out", "Logging out"]
        assert error.call_count == 1
        assert isinstance(error.call_args[0][1], NotFoundError)
        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "not_found"
        assert body["request_id"] == response.headers["X-Request-ID"]
        assert sessions.released == 1


class TestLifespan:
    """Startup/shutdown hooks driven by ASGI lifespan messages."""

    @staticmethod
    def _channel(messages):
        sent = []
        pending = list(messages)

        async def receive():
            return pending.pop(0)

        async def send(message):
            sent.append(message)

        return receive, send, sent

    @pytest.mark.asyncio
    async def test_hooks_run_in_order(self, app):
        calls = []

        @app.on_startup
        async def start():
            calls.append("startup")

        @app.on_shutdown
        async def stop():
            calls.append("shutdown")

        receive, send, sent = self._channel(
            [{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}]
        )
        await app({"type": "lifespan"}, receive, send)

        assert calls == ["startup", "shutdown"]
        assert [m["type"] for m in sent] == ["lifespan.startup.complete", "lifespan.shutdown.complete"]

    @pytest.mark.asyncio
    async def test_failing_startup_hook_reports_failure(self, app):
        @app.on_startup
        async def start():
            raise RuntimeError("no database")

        receive, send, sent = self._channel([{"type": "lifespan.startup"}])

        with pytest.raises(RuntimeError, match="no database"):
            await app({"type": "lifespan"}, receive, send)

        assert sent[0]["type"] == "lifespan.startup.failed"
        assert "no database" in sent[0]["message"]
