"""Middleware: protocol-based, no inheritance required.

A middleware is any callable matching:
    async def mw(ctx: RequestContext, next: Next) -> AnyResponse

Built-in middleware:
    CORSMiddleware -- Cross-Origin Resource Sharing
    RequestIdHeader -- Echo the request's correlation id
    RequestLogger -- One access-log line per request
    TransformMiddleware -- Response transform pipeline (warble.transforms)

Helpers:
    compose -- Fold several middleware into one
    observe -- Request/response/error hooks
"""

from warble.middleware.access import RequestLogger, observe
from warble.middleware.builtin import CORSConfig, CORSMiddleware
from warble.middleware.protocol import Middleware, Next, compose
from warble.middleware.request_id import RequestIdHeader

__all__ = [
    "CORSConfig",
    "CORSMiddleware",
    "Middleware",
    "Next",
    "RequestIdHeader",
    "RequestLogger",
    "compose",
    "observe",
]
