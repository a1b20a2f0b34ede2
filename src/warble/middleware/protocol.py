"""Middleware protocol and Next type alias.

A middleware is any callable matching::

    async def my_mw(ctx: RequestContext, next: Next) -> AnyResponse: ...

No base class required. ``next`` takes no arguments: the context is
shared by the whole chain, so middleware communicates through
``ctx.vars`` instead of rebuilding the request. Each stage may call
``next()`` at most once.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Protocol, TypeAlias

from warble._internal.invoke import invoke
from warble.http.response import AnyResponse

if TYPE_CHECKING:
    from warble.context import RequestContext

# The rest of the chain, from the current stage's point of view
Next: TypeAlias = "Callable[[], Awaitable[AnyResponse]]"


class Middleware(Protocol):
    """Protocol for warble middleware.

    Accepts both functions and callable objects::

        # Function middleware
        async def timing(ctx: RequestContext, next: Next) -> AnyResponse:
            start = time.monotonic()
            response = await next()
            elapsed = time.monotonic() - start
            return response.with_header("X-Time", f"{elapsed:.3f}")

        # Class middleware
        class RateLimiter:
            async def __call__(self, ctx: RequestContext, next: Next) -> AnyResponse:
                ...
    """

    async def __call__(self, ctx: RequestContext, next: Next) -> AnyResponse: ...


def compose(*middleware: Callable[..., Any]) -> Callable[..., Any]:
    """Fold *middleware* into a single middleware, outermost first.

    ``app.use(compose(a, b))`` behaves like ``app.use(a); app.use(b)``
    but occupies one slot, so it can be mounted under one prefix or
    attached to a single route.
    """

    async def composed(ctx: RequestContext, next: Next) -> AnyResponse:
        async def run(index: int) -> AnyResponse:
            if index >= len(middleware):
                return await next()
            return await invoke(middleware[index], ctx, lambda: run(index + 1))

        return await run(0)

    return composed
