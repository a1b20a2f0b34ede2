"""The inbound HTTP request.

Metadata is fixed when the request is built. The body is pulled from
the ASGI ``receive`` channel on first access, bounded by ``max_body``,
and remembered for later readers (handlers, middleware, transforms).
"""

from __future__ import annotations

import json as json_module
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from urllib.parse import quote, unquote

from warble._internal.asgi import Receive, Scope
from warble.errors import RequestTooLarge
from warble.http.headers import Headers
from warble.http.query import QueryParams

if TYPE_CHECKING:
    from warble.http.forms import FormData

_DEFAULT_FORM_TYPE = "application/x-www-form-urlencoded"


@dataclass(frozen=True, slots=True)
class Request:
    """One HTTP request as seen by warble.

    ``path`` is decoded; ``raw_path`` keeps the percent-encoding and is
    what the router matches, so ``%2F`` inside a parameter stays inside
    that parameter.
    """

    method: str
    path: str
    raw_path: str
    headers: Headers
    query: QueryParams
    scheme: str = "http"
    http_version: str = "1.1"
    server: tuple[str, int] | None = None
    client: tuple[str, int] | None = None
    max_body: int | None = None

    _receive: Receive | None = field(default=None, repr=False, compare=False)
    # Body and parsed form, filled on first read.
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    @property
    def content_length(self) -> int | None:
        """Declared body size, or ``None`` when absent or malformed."""
        declared = self.headers.get("content-length", "")
        return int(declared) if declared.isdigit() else None

    @property
    def host(self) -> str:
        """Host header, falling back to the server address."""
        if host := self.headers.get("host"):
            return host
        if self.server is None:
            return "localhost"
        return "{}:{}".format(*self.server)

    @property
    def url(self) -> str:
        """Absolute URL: scheme, host, encoded path, query."""
        query = f"?{self.query.raw}" if self.query.raw else ""
        return f"{self.scheme}://{self.host}{self.raw_path}{query}"

    # -- Body --

    async def stream(self) -> AsyncGenerator[bytes]:
        """Yield body chunks straight from ``receive`` (uncached)."""
        if self._receive is None:
            return
        more = True
        while more:
            message = await self._receive()
            if message.get("type") == "http.disconnect":
                return
            if chunk := message.get("body", b""):
                yield chunk
            more = message.get("more_body", False)

    async def body(self) -> bytes:
        """The full body, read once.

        Raises ``RequestTooLarge`` when the declared or actual size
        passes ``max_body``.
        """
        cached = self._cache.get("body")
        if cached is not None:
            return cached
        limit = self.max_body
        declared = self.content_length
        if limit is not None and declared is not None and declared > limit:
            raise RequestTooLarge(limit)
        buffer = bytearray()
        async for chunk in self.stream():
            buffer += chunk
            if limit is not None and len(buffer) > limit:
                raise RequestTooLarge(limit)
        self._cache["body"] = data = bytes(buffer)
        return data

    async def text(self) -> str:
        return (await self.body()).decode("utf-8")

    async def json(self) -> Any:
        return json_module.loads(await self.body())

    async def form(self) -> FormData:
        """URL-encoded or multipart form fields, parsed once.

        Multipart needs ``python-multipart`` (``pip install warble[forms]``).
        """
        form = self._cache.get("form")
        if form is None:
            from warble.http.forms import parse_form_data

            form = await parse_form_data(
                await self.body(), self.content_type or _DEFAULT_FORM_TYPE
            )
            self._cache["form"] = form
        return form

    # -- Construction --

    @classmethod
    def from_asgi(
        cls,
        scope: Scope,
        receive: Receive | None = None,
        *,
        max_body: int | None = None,
    ) -> Request:
        """Build from an ASGI HTTP scope."""
        path = scope["path"]
        raw = scope.get("raw_path")
        raw_path = raw.decode("latin-1").partition("?")[0] if raw else quote(path)
        server, client = scope.get("server"), scope.get("client")
        return cls(
            method=scope["method"].upper(),
            path=path,
            raw_path=raw_path or "/",
            headers=Headers.from_raw(scope.get("headers", ())),
            query=QueryParams(scope.get("query_string", b"")),
            scheme=scope.get("scheme", "http"),
            http_version=scope.get("http_version", "1.1"),
            server=tuple(server) if server else None,
            client=tuple(client) if client else None,
            max_body=max_body,
            _receive=receive,
        )

    @classmethod
    def build(
        cls,
        method: str,
        target: str,
        *,
        headers: dict[str, str] | None = None,
        body: bytes = b"",
    ) -> Request:
        """A standalone request, e.g. for calling ``App.handle`` directly.

        *target* is an encoded path with an optional query string.
        """
        raw_path, _, query = target.partition("?")
        pending = [{"type": "http.request", "body": body, "more_body": False}]

        async def receive() -> dict[str, Any]:
            return pending.pop() if pending else {"type": "http.disconnect"}

        return cls(
            method=method.upper(),
            path=unquote(raw_path),
            raw_path=raw_path or "/",
            headers=Headers((headers or {}).items()),
            query=QueryParams(query),
            _receive=receive,
        )
