"""Correlation id echo."""

from __future__ import annotations

from typing import TYPE_CHECKING

from warble.http.response import AnyResponse

if TYPE_CHECKING:
    from warble.context import RequestContext
    from warble.middleware.protocol import Next


class RequestIdHeader:
    """Copy ``ctx.request_id`` onto the response.

    Usage::

        app.use(RequestIdHeader())              # x-request-id
        app.use(RequestIdHeader("X-Trace-Id"))
    """

    __slots__ = ("header",)

    def __init__(self, header: str = "x-request-id") -> None:
        self.header = header

    async def __call__(self, ctx: RequestContext, next: Next) -> AnyResponse:
        response = await next()
        return response.set_header(self.header, ctx.request_id)
