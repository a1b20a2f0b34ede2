"""Request dispatch: middleware chain, routing, fallbacks, error handling.

For one request:

1. Select the mounted middleware whose prefix applies to the path,
   keeping registration order.
2. Run them as an onion. Each stage calls ``await next()`` to run the
   rest of the chain; code after ``next()`` runs after everything
   downstream finished.
3. The route is matched before the chain starts, so middleware sees
   ``ctx.params``. The innermost stage runs the matched route's own
   middleware and then its handler. Without a match it answers 405
   (path routed under other methods), then the custom not-found
   handler, then the default 404.
4. Any exception goes to the global error handler when one is set.
   If that handler raises too, a fixed 500 is returned.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from warble._internal.invoke import invoke
from warble.http.response import (
    AnyResponse,
    Response,
    SSEResponse,
    StreamingResponse,
    json_response,
    method_not_allowed,
    not_found_response,
    text_response,
)

if TYPE_CHECKING:
    from warble.context import RequestContext
    from warble.routing.router import Router

logger = logging.getLogger("warble.server")


@dataclass(frozen=True, slots=True)
class MountedMiddleware:
    """A middleware and the path prefix it applies to. Empty prefix = global."""

    prefix: str
    fn: Callable[..., Any]

    def applies_to(self, path: str) -> bool:
        """Whether *path* equals the prefix or lies below it segment-wise."""
        if not self.prefix or self.prefix == path:
            return True
        return path.startswith(self.prefix.rstrip("/") + "/")


def coerce_response(value: Any) -> AnyResponse:
    """Turn a handler's return value into a response.

    Dispatch:
        - ``Response`` / ``StreamingResponse`` / ``SSEResponse`` -> as-is
        - ``str`` -> ``text/plain``
        - ``dict`` / ``list`` -> JSON
    """
    if isinstance(value, (Response, StreamingResponse, SSEResponse)):
        return value
    if isinstance(value, str):
        return text_response(value)
    if isinstance(value, (dict, list)):
        return json_response(value)
    raise TypeError(
        f"Handler returned {type(value).__name__}; expected a Response, str, dict, or list"
    )


async def run_chain(
    ctx: RequestContext,
    stages: Sequence[Callable[..., Any]],
    terminal: Callable[[], Awaitable[AnyResponse]],
) -> AnyResponse:
    """Run *stages* as an onion around *terminal*.

    Stage ``i`` reaches stage ``i + 1`` through its ``next`` argument.
    Calling ``next`` twice from one stage raises ``RuntimeError``.
    """

    async def call(index: int) -> AnyResponse:
        if index >= len(stages):
            return await terminal()
        stage = stages[index]
        called = False

        async def next_() -> AnyResponse:
            nonlocal called
            if called:
                raise RuntimeError(f"next() called more than once by middleware {stage!r}")
            called = True
            return await call(index + 1)

        return coerce_response(await invoke(stage, ctx, next_))

    return await call(0)


async def dispatch(
    ctx: RequestContext,
    *,
    router: Router,
    middleware: Sequence[MountedMiddleware],
    not_found: Callable[..., Any] | None = None,
    error_handler: Callable[..., Any] | None = None,
) -> AnyResponse:
    """Produce the response for *ctx*.

    Without an *error_handler* exceptions propagate to the caller.
    """
    request = ctx.request
    path = request.raw_path
    stages = [mw.fn for mw in middleware if mw.applies_to(path)]

    # Matched up front so middleware can already see ctx.params.
    match = router.match(request.method, path)
    if match is not None:
        ctx.params = dict(match.path_params)

    async def route() -> AnyResponse:
        if match is not None:
            handler = match.route.handler

            async def call_handler() -> AnyResponse:
                return coerce_response(await invoke(handler, ctx))

            return await run_chain(ctx, match.route.middleware, call_handler)

        allow = router.allowed_methods(path)
        if allow:
            return method_not_allowed(request.path, allow)
        if not_found is not None:
            return coerce_response(await invoke(not_found, ctx))
        return not_found_response(request.method, request.path)

    try:
        return await run_chain(ctx, stages, route)
    except Exception as exc:
        if error_handler is None:
            raise
        try:
            return coerce_response(await invoke(error_handler, exc, ctx))
        except Exception:
            logger.exception("Error handler failed for %s %s", request.method, request.path)
            return text_response("Internal Server Error", 500)
