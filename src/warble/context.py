"""Per-request context handed to handlers and middleware.

One ``RequestContext`` is built for every inbound request. It carries
the raw ``Request``, the parsed URL, matched path params, the acquired
application state, an open ``vars`` bag for middleware to share data,
a correlation id, and the request's abort signal.

The current context is also published through a ``ContextVar`` for
code that is not handed one directly::

    from warble.context import get_context

    def audit(message: str) -> None:
        log.info("[%s] %s", get_context().request_id, message)
"""

from __future__ import annotations

import logging
import random
import time
import uuid
from collections.abc import Callable, Mapping
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any
from urllib.parse import SplitResult, urlsplit

from warble._internal.invoke import invoke
from warble.config import AppConfig
from warble.http.response import (
    Response,
    SSEResponse,
    html_response,
    json_response,
    text_response,
)
from warble.realtime.abort import AbortSignal
from warble.realtime.session import SSEOptions, SSESession

if TYPE_CHECKING:
    from warble.http.forms import FormData
    from warble.http.request import Request

logger = logging.getLogger("warble.sse")

context_var: ContextVar[RequestContext] = ContextVar("warble_context")
"""The current request context. Set by the dispatcher for each request."""


def get_context() -> RequestContext:
    """Return the current request context.

    Raises ``LookupError`` if called outside a request.
    """
    return context_var.get()


_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(n: int) -> str:
    if n == 0:
        return "0"
    digits: list[str] = []
    while n:
        n, rem = divmod(n, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_request_id() -> str:
    """A random correlation id.

    Falls back to ``<base36 ms timestamp>-<random base36>`` when the
    OS randomness source is unavailable.
    """
    try:
        return uuid.uuid4().hex
    except NotImplementedError:
        stamp = _base36(int(time.time() * 1000))
        return f"{stamp}-{_base36(random.getrandbits(52))}"


class RequestContext:
    """Everything a handler needs for one request.

    Handlers receive it as their only argument::

        @app.get("/users/:id")
        async def show(ctx: RequestContext):
            user = ctx.state.users[ctx.params["id"]]
            return ctx.json(user)
    """

    __slots__ = (
        "config",
        "params",
        "request",
        "request_id",
        "signal",
        "state",
        "url",
        "vars",
    )

    def __init__(
        self,
        request: Request,
        *,
        state: Any = None,
        params: Mapping[str, str] | None = None,
        config: AppConfig | None = None,
        signal: AbortSignal | None = None,
        request_id: str | None = None,
        vars: dict[str, Any] | None = None,
    ) -> None:
        self.request = request
        self.url: SplitResult = urlsplit(request.url)
        self.params: dict[str, str] = dict(params or {})
        self.state = state
        self.config = config or AppConfig()
        self.signal = signal or AbortSignal()
        self.request_id = request_id or generate_request_id()
        self.vars: dict[str, Any] = vars if vars is not None else {}

    # -- Shortcuts --

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def path(self) -> str:
        return self.request.path

    def get_var(self, name: str, default: Any = None) -> Any:
        return self.vars.get(name, default)

    def set_var(self, name: str, value: Any) -> None:
        self.vars[name] = value

    def query(self, name: str, default: str | None = None) -> str | None:
        """First value of query parameter *name*."""
        return self.request.query.get(name, default)

    def query_all(self) -> dict[str, list[str]]:
        """Every query parameter with all of its values."""
        return {name: self.request.query.get_list(name) for name in self.request.query}

    # -- Body --

    async def read_text(self) -> str:
        return await self.request.text()

    async def read_json(self) -> Any:
        return await self.request.json()

    async def read_json_parsed(self, parser: Callable[[Any], Any]) -> Any:
        """Decode the JSON body and pass it through *parser*."""
        return parser(await self.request.json())

    async def read_json_with(self, schema: Any) -> Any:
        """Decode the JSON body and validate it with ``schema.parse``."""
        return schema.parse(await self.request.json())

    async def read_form(self) -> FormData:
        return await self.request.form()

    # -- Responses --

    def text(
        self,
        body: str,
        status: int = 200,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        return text_response(body, status, headers)

    def html(
        self,
        body: str,
        status: int = 200,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        return html_response(body, status, headers)

    def json(
        self,
        obj: Any,
        status: int = 200,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        return json_response(obj, status, headers)

    def sse(
        self,
        producer: Callable[[SSESession, RequestContext], Any] | None = None,
        *,
        headers: Mapping[str, str] | None = None,
        retry_ms: int | None = None,
        keepalive_interval: float | None = None,
        keepalive_comment: str | None = None,
        disable_proxy_buffering: bool | None = None,
    ) -> SSEResponse:
        """Start a Server-Sent Events stream for this request.

        The session closes when the client goes away. *producer* runs
        once the stream is open; if it raises, the client receives an
        ``error`` event and the stream ends. Unset options fall back to
        the ``sse_*`` fields of ``AppConfig``.
        """
        cfg = self.config
        options = SSEOptions(
            headers=dict(headers or {}),
            retry_ms=retry_ms if retry_ms is not None else cfg.sse_retry_ms,
            disable_proxy_buffering=(
                disable_proxy_buffering
                if disable_proxy_buffering is not None
                else cfg.sse_disable_proxy_buffering
            ),
            keepalive_interval=(
                keepalive_interval
                if keepalive_interval is not None
                else cfg.sse_keepalive_interval
            ),
            keepalive_comment=(
                keepalive_comment
                if keepalive_comment is not None
                else cfg.sse_keepalive_comment
            ),
        )
        session = SSESession(options, signal=self.signal)
        response = session.response
        if producer is None:
            return response

        async def run() -> None:
            if not await session.wait_ready():
                return
            try:
                await invoke(producer, session, self)
            except Exception as exc:
                logger.exception("SSE producer failed for %s %s", self.method, self.path)
                session.error(f"SSE producer error: {exc}")
                session.close()

        return SSEResponse(
            session=session,
            producer=run,
            status=response.status,
            content_type=response.content_type,
            headers=response.headers,
        )

    def __repr__(self) -> str:
        return f"<RequestContext {self.method} {self.path} id={self.request_id}>"
