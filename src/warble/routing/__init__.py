"""Routing: path template compilation and an ordered route table.

Routes are compiled when they are registered, so a malformed template
fails at startup, never on a request. Matching is a linear scan in
registration order: the first matching route wins.
"""

from warble.routing.route import Route, RouteInfo, RouteMatch, RouteMeta
from warble.routing.router import Router
from warble.routing.template import CompiledTemplate, build_path, compile_template

__all__ = [
    "CompiledTemplate",
    "Route",
    "RouteInfo",
    "RouteMatch",
    "RouteMeta",
    "Router",
    "build_path",
    "compile_template",
]
