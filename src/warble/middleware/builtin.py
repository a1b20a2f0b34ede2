"""Built-in middleware: CORS.

Answers preflight requests directly and stamps CORS headers onto
every other response.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from warble.http.response import AnyResponse, Response

if TYPE_CHECKING:
    from warble.context import RequestContext
    from warble.middleware.protocol import Next


@dataclass(frozen=True, slots=True)
class CORSConfig:
    """CORS middleware configuration.

    The defaults allow any origin without credentials::

        CORSConfig(
            allow_origins=("https://example.com",),
            allow_credentials=True,
            max_age=600,
        )
    """

    allow_origins: tuple[str, ...] = ("*",)
    allow_methods: tuple[str, ...] = (
        "GET",
        "HEAD",
        "POST",
        "PUT",
        "PATCH",
        "DELETE",
        "OPTIONS",
    )
    allow_headers: tuple[str, ...] = ("Content-Type", "Authorization")
    expose_headers: tuple[str, ...] = ()
    allow_credentials: bool = False
    max_age: int | None = None


class CORSMiddleware:
    """Cross-Origin Resource Sharing.

    - Requests without an ``Origin`` header pass through untouched.
    - ``OPTIONS`` requests with an allowed origin are answered with
      ``204`` and the preflight headers; the rest of the chain does not run.
    - Other requests run normally and get ``Access-Control-Allow-Origin``
      (plus credentials/expose headers when configured).

    With an explicit origin list the request's ``Origin`` is echoed back
    when it is listed, and ``Vary: Origin`` is added. Unlisted origins
    get no CORS headers.

    Usage::

        app.use(CORSMiddleware(CORSConfig(allow_origins=("https://example.com",))))
    """

    __slots__ = ("config",)

    def __init__(self, config: CORSConfig | None = None) -> None:
        self.config = config or CORSConfig()

    def _origin_for(self, request_origin: str) -> str | None:
        """The ``Access-Control-Allow-Origin`` value, or ``None`` to skip."""
        origins = self.config.allow_origins
        if "*" in origins and not self.config.allow_credentials:
            return "*"
        if request_origin in origins or "*" in origins:
            return request_origin
        return None

    def _stamp(self, response: AnyResponse, origin: str) -> AnyResponse:
        cfg = self.config
        response = response.set_header("Access-Control-Allow-Origin", origin)
        if origin != "*":
            response = response.with_header("Vary", "Origin")
        if cfg.allow_credentials:
            response = response.set_header("Access-Control-Allow-Credentials", "true")
        if cfg.expose_headers:
            response = response.set_header(
                "Access-Control-Expose-Headers", ", ".join(cfg.expose_headers)
            )
        return response

    def _preflight(self, origin: str) -> AnyResponse:
        cfg = self.config
        response = self._stamp(Response(body="", status=204), origin)
        response = response.set_header("Access-Control-Allow-Methods", ", ".join(cfg.allow_methods))
        response = response.set_header("Access-Control-Allow-Headers", ", ".join(cfg.allow_headers))
        if cfg.max_age is not None:
            response = response.set_header("Access-Control-Max-Age", str(cfg.max_age))
        return response

    async def __call__(self, ctx: RequestContext, next: Next) -> AnyResponse:
        request_origin = ctx.request.headers.get("origin")
        if request_origin is None:
            return await next()

        origin = self._origin_for(request_origin)
        if ctx.method == "OPTIONS" and origin is not None:
            return self._preflight(origin)

        response = await next()
        if origin is None:
            return response
        return self._stamp(response, origin)
