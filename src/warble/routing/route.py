"""Route, RouteMatch, and route metadata frozen dataclasses."""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from warble.routing.template import CompiledTemplate


@dataclass(frozen=True, slots=True)
class RouteMeta:
    """Descriptive metadata attached to a route for introspection."""

    summary: str | None = None
    description: str | None = None
    tags: tuple[str, ...] = ()
    auth: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Route:
    """A compiled route. Created at registration, immutable afterwards.

    ``middleware`` runs (in order) after global middleware and before
    ``handler``, only for requests that matched this route.
    """

    method: str
    compiled: CompiledTemplate
    handler: Callable[..., Any]
    middleware: tuple[Callable[..., Any], ...] = ()
    meta: RouteMeta | None = None

    @property
    def template(self) -> str:
        return self.compiled.template

    @property
    def param_keys(self) -> tuple[str, ...]:
        return self.compiled.param_keys


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful route match."""

    route: Route
    path_params: dict[str, str]


@dataclass(frozen=True, slots=True)
class RouteInfo:
    """Public, handler-free view of a registered route."""

    method: str
    path: str
    keys: tuple[str, ...]
    meta: RouteMeta | None = None
