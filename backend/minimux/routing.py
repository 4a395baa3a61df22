"""
minimux: Route Table
====================

What:  The path-matching capability the App composes.
How:   App only needs two operations from a router: register an endpoint for a
       verb+path, and match an incoming verb+path to an endpoint and its
       parameters. RouteTable names that capability; StarletteRouteTable
       fulfils it with Starlette's compiled route patterns.

Path Patterns:
    Both tree-router style and Starlette style are accepted:

        /items/:id             → /items/{id}
        /static/*filepath      → /static/{filepath:path}
        /items/{id:int}        → unchanged
"""

import re
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Optional, Protocol, Set, Tuple

from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Match, Route, Router

# Native endpoint signature: the raw request plus the extracted path parameters
Endpoint = Callable[[Request, Dict[str, str]], Awaitable[Response]]

_NAMED_SEGMENT = re.compile(r"^:([A-Za-z_][A-Za-z0-9_]*)$")
_CATCH_ALL_SEGMENT = re.compile(r"^\*([A-Za-z_][A-Za-z0-9_]*)$")


def to_route_pattern(path: str) -> str:
    """
    Translate a tree-router pattern into a Starlette pattern.

    A catch-all segment must be the last one.
    """
    if not path.startswith("/"):
        raise ValueError(f"Route path must begin with '/': {path!r}")

    segments = path.split("/")
    converted = []
    for index, segment in enumerate(segments):
        named = _NAMED_SEGMENT.match(segment)
        catch_all = _CATCH_ALL_SEGMENT.match(segment)
        if named:
            converted.append("{%s}" % named.group(1))
        elif catch_all:
            if index != len(segments) - 1:
                raise ValueError(f"Catch-all segment must be last in route path: {path!r}")
            converted.append("{%s:path}" % catch_all.group(1))
        else:
            converted.append(segment)
    return "/".join(converted)


@dataclass(frozen=True)
class RouteMatch:
    """
    Result of RouteTable.match().

    `endpoint` is None when the path exists but not for the requested verb;
    `allowed` then lists the verbs that are registered for it.
    """

    endpoint: Optional[Endpoint]
    params: Dict[str, str] = field(default_factory=dict)
    allowed: Tuple[str, ...] = ()


class RouteTable(Protocol):
    """Capability the App needs from a router."""

    def register_route(self, verb: str, path: str, endpoint: Endpoint) -> None:
        ...

    def match(self, verb: str, path: str) -> Optional[RouteMatch]:
        ...


class StarletteRouteTable:
    """
    RouteTable backed by starlette.routing.

    Routes are tried in registration order; the first full match wins.
    Registering the same verb and path twice raises ValueError.
    """

    def __init__(self) -> None:
        self._router = Router()
        self._endpoints: Dict[int, Endpoint] = {}
        self._registered: Set[Tuple[str, str]] = set()

    @property
    def routes(self):
        return self._router.routes

    def register_route(self, verb: str, path: str, endpoint: Endpoint) -> None:
        pattern = to_route_pattern(path)
        key = (verb.upper(), pattern)
        if key in self._registered:
            raise ValueError(f"Route already registered: {verb.upper()} {path}")
        route = Route(pattern, endpoint=_unreachable, methods=[verb.upper()])
        self._registered.add(key)
        self._endpoints[id(route)] = endpoint
        self._router.routes.append(route)

    def match(self, verb: str, path: str) -> Optional[RouteMatch]:
        scope = {"type": "http", "method": verb.upper(), "path": path, "root_path": ""}
        allowed = []
        partial_params: Dict[str, str] = {}
        for route in self._router.routes:
            result, child_scope = route.matches(scope)
            if result == Match.FULL:
                params = {k: str(v) for k, v in child_scope["path_params"].items()}
                return RouteMatch(endpoint=self._endpoints[id(route)], params=params)
            if result == Match.PARTIAL:
                partial_params = {k: str(v) for k, v in child_scope["path_params"].items()}
                allowed.extend(m for m in sorted(route.methods or ()) if m not in allowed)
        if allowed:
            return RouteMatch(endpoint=None, params=partial_params, allowed=tuple(allowed))
        return None


async def _unreachable(request: Request) -> Response:  # pragma: no cover
    # Routes are matched, never served, by the Starlette router.
    raise RuntimeError("StarletteRouteTable routes are dispatched through App")
