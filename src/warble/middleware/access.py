"""Access logging and observability hooks."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from warble.http.response import AnyResponse

if TYPE_CHECKING:
    from warble.context import RequestContext
    from warble.middleware.protocol import Next

logger = logging.getLogger("warble.access")


class RequestLogger:
    """Log one line per request to ``warble.access``.

    ``[<request id>] GET /users/42 -> 200 3.1ms`` on success, or
    ``[<request id>] GET /users/42 ERROR 3.1ms`` (with traceback) when
    the downstream chain raises. The exception is re-raised.
    """

    __slots__ = ("logger",)

    def __init__(self, log: logging.Logger | None = None) -> None:
        self.logger = log or logger

    async def __call__(self, ctx: RequestContext, next: Next) -> AnyResponse:
        start = time.perf_counter()
        try:
            response = await next()
        except Exception:
            ms = (time.perf_counter() - start) * 1000
            self.logger.exception("[%s] %s %s ERROR %.1fms", ctx.request_id, ctx.method, ctx.path, ms)
            raise
        ms = (time.perf_counter() - start) * 1000
        self.logger.info(
            "[%s] %s %s -> %d %.1fms",
            ctx.request_id,
            ctx.method,
            ctx.path,
            response.status,
            ms,
        )
        return response


def observe(
    *,
    on_request: Callable[[RequestContext], Any] | None = None,
    on_response: Callable[[RequestContext, AnyResponse, float], Any] | None = None,
    on_error: Callable[[RequestContext, Exception], Any] | None = None,
) -> Callable[..., Any]:
    """Middleware that calls plain hooks around the chain.

    ``on_response`` receives the elapsed time in milliseconds.
    ``on_error`` sees the exception before it keeps propagating.

    Usage::

        app.use(observe(on_response=lambda ctx, r, ms: metrics.timing(ctx.path, ms)))
    """

    async def observer(ctx: RequestContext, next: Next) -> AnyResponse:
        start = time.perf_counter()
        try:
            if on_request is not None:
                on_request(ctx)
            response = await next()
            if on_response is not None:
                on_response(ctx, response, (time.perf_counter() - start) * 1000)
            return response
        except Exception as exc:
            if on_error is not None:
                on_error(ctx, exc)
            raise

    return observer
