"""Ordered route table.

Routes are matched by a linear scan in registration order. The first
route whose method and pattern both match wins, even when a more
specific route was registered later. There is no ranking.
"""

from warble.routing.route import Route, RouteInfo, RouteMatch


class Router:
    """Route table with first-registration-wins matching.

    Usage::

        router = Router()
        router.add(Route("GET", compile_template("/users/:id"), handler))
        match = router.match("GET", "/users/42")
        match.path_params  # {"id": "42"}
    """

    __slots__ = ("_routes",)

    def __init__(self) -> None:
        self._routes: list[Route] = []

    def add(self, route: Route) -> None:
        """Append a route. Duplicates are kept; only the first can match."""
        self._routes.append(route)

    @property
    def routes(self) -> tuple[Route, ...]:
        """All registered routes, in registration order."""
        return tuple(self._routes)

    def info(self) -> list[RouteInfo]:
        """Introspection view of every route (duplicates included)."""
        return [
            RouteInfo(method=r.method, path=r.template, keys=r.param_keys, meta=r.meta)
            for r in self._routes
        ]

    def match(self, method: str, path: str) -> RouteMatch | None:
        """Return the first route registered for *method* matching *path*."""
        for route in self._routes:
            if route.method != method:
                continue
            params = route.compiled.match(path)
            if params is None:
                continue
            return RouteMatch(route=route, path_params=params)
        return None

    def allowed_methods(self, path: str) -> str:
        """Methods registered for *path* under any method.

        Sorted, de-duplicated, comma-joined; the ``Allow`` header value.
        Empty when no route matches the path at all.
        """
        methods = {r.method for r in self._routes if r.compiled.pattern.match(path)}
        return ", ".join(sorted(methods))

    def __len__(self) -> int:
        return len(self._routes)
