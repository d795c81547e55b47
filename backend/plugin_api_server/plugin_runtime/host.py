from __future__ import annotations
from typing import Any, Callable, Iterator, List, Tuple

from starlette.routing import BaseRoute, Route, Router


class RouteHost:
    """Mount/unmount plugin endpoints on a live Starlette or FastAPI router.

    Mutation is plain list surgery on ``router.routes``; no await happens
    while the route stack is being changed.
    """

    def __init__(self, router: Router):
        self.router = router

    def mount(self, method: str, path: str, endpoint: Callable[..., Any], name: str | None = None) -> Route:
        route = Route(path, endpoint=endpoint, methods=[method], name=name, include_in_schema=False)
        self.router.routes.append(route)
        return route

    def unmount(self, path: str, method: str) -> int:
        method = method.upper()
        kept: List[BaseRoute] = []
        removed = 0
        for route in self.router.routes:
            if getattr(route, 'path', None) == path and method in (getattr(route, 'methods', None) or ()):
                removed += 1
                continue
            kept.append(route)
        if removed:
            self.router.routes[:] = kept
        return removed

    def routes(self) -> Iterator[Tuple[str, frozenset[str]]]:
        for route in list(self.router.routes):
            path = getattr(route, 'path', None)
            if path is None:
                continue
            yield path, frozenset(getattr(route, 'methods', None) or ())

    def count(self, path: str, method: str) -> int:
        method = method.upper()
        return sum(1 for p, methods in self.routes() if p == path and method in methods)
