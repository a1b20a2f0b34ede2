"""In-process test client for warble applications.

Requests go straight into the app's ASGI callable, no sockets involved.
Plain requests come back as ordinary ``Response`` objects; event
streams come back as an ``SSETestResult``.
"""

from __future__ import annotations

import asyncio
import contextlib
import json as json_module
from typing import Any
from urllib.parse import quote, unquote

from warble.app import App
from warble.http.response import Response
from warble.testing.sse import SSETestResult, parse_sse_frames

_PATH_SAFE = "/%:@!$&'()*+,;=-._~"


def _scope(method: str, target: str, headers: dict[str, str] | None) -> dict[str, Any]:
    """ASGI HTTP scope for *target* (path plus optional query string)."""
    path, _, query = target.partition("?")
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method.upper(),
        "scheme": "http",
        "path": unquote(path),
        "raw_path": quote(path, safe=_PATH_SAFE).encode("latin-1"),
        "query_string": query.encode("latin-1"),
        "root_path": "",
        "headers": [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in (headers or {}).items()
        ],
        "server": ("testserver", 80),
        "client": ("127.0.0.1", 0),
    }


class _Inbox:
    """ASGI ``receive``: the body once, then ``http.disconnect``.

    The disconnect is held back until ``hang_up()`` when *hold* is set,
    which is how a streaming client stays connected.
    """

    def __init__(self, body: bytes = b"", *, hold: bool = False) -> None:
        self._body: bytes | None = body
        self._gone = asyncio.Event()
        if not hold:
            self._gone.set()

    def hang_up(self) -> None:
        self._gone.set()

    @property
    def hung_up(self) -> bool:
        return self._gone.is_set()

    async def __call__(self) -> dict[str, Any]:
        if self._body is not None:
            body, self._body = self._body, None
            return {"type": "http.request", "body": body, "more_body": False}
        await self._gone.wait()
        return {"type": "http.disconnect"}


class _Capture:
    """ASGI ``send``: records status, headers, and body chunks."""

    def __init__(self) -> None:
        self.status = 200
        self.headers: list[tuple[str, str]] = []
        self.chunks: list[bytes] = []

    async def __call__(self, message: dict[str, Any]) -> None:
        kind = message["type"]
        if kind == "http.response.start":
            self.status = message["status"]
            self.headers = [
                (name.decode("latin-1"), value.decode("latin-1"))
                for name, value in message.get("headers", [])
            ]
        elif kind == "http.response.body":
            if chunk := message.get("body", b""):
                self.chunks.append(chunk)
                self.on_chunk(chunk)

    def on_chunk(self, chunk: bytes) -> None:
        """Hook for subclasses; called for every non-empty body chunk."""

    @property
    def body(self) -> bytes:
        return b"".join(self.chunks)

    def to_response(self) -> Response:
        content_type = "text/plain; charset=utf-8"
        rest: list[tuple[str, str]] = []
        for name, value in self.headers:
            if name == "content-type":
                content_type = value
            else:
                rest.append((name, value))
        return Response(
            body=self.body,
            status=self.status,
            content_type=content_type,
            headers=tuple(rest),
        )


class _EventCapture(_Capture):
    """Counts event frames and hangs up once *limit* have arrived."""

    def __init__(self, inbox: _Inbox, limit: int) -> None:
        super().__init__()
        self._inbox = inbox
        self._limit = limit
        self._seen = 0

    def on_chunk(self, chunk: bytes) -> None:
        for block in chunk.decode("utf-8", errors="replace").split("\n\n"):
            if any(line.startswith(("data:", "event:")) for line in block.splitlines()):
                self._seen += 1
        if self._seen >= self._limit:
            self._inbox.hang_up()


class TestClient:
    """Drive a warble app in-process.

    Usage::

        async with TestClient(app) as client:
            response = await client.get("/users/42")
            assert response.status == 200

    Entering runs the app's startup hooks, leaving runs its shutdown hooks.
    """

    __test__ = False  # not a pytest test class
    __slots__ = ("app",)

    def __init__(self, app: App) -> None:
        self.app = app

    async def __aenter__(self) -> TestClient:
        await self.app.startup()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.app.shutdown()

    async def get(self, path: str, *, headers: dict[str, str] | None = None) -> Response:
        return await self.request("GET", path, headers=headers)

    async def head(self, path: str, *, headers: dict[str, str] | None = None) -> Response:
        return await self.request("HEAD", path, headers=headers)

    async def options(self, path: str, *, headers: dict[str, str] | None = None) -> Response:
        return await self.request("OPTIONS", path, headers=headers)

    async def delete(self, path: str, *, headers: dict[str, str] | None = None) -> Response:
        return await self.request("DELETE", path, headers=headers)

    async def post(self, path: str, **kwargs: Any) -> Response:
        """POST with ``headers=``, raw ``body=`` or ``json=``."""
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> Response:
        return await self.request("PUT", path, **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> Response:
        return await self.request("PATCH", path, **kwargs)

    async def request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        body: bytes | None = None,
        json: Any = None,
    ) -> Response:
        """Send one request and collect the whole response."""
        headers = dict(headers or {})
        if json is not None:
            body = json_module.dumps(json).encode("utf-8")
            headers.setdefault("content-type", "application/json")

        capture = _Capture()
        await self.app(_scope(method, path, headers), _Inbox(body or b""), capture)
        return capture.to_response()

    async def sse(
        self,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        max_events: int = 10,
        disconnect_after: float | None = None,
    ) -> SSETestResult:
        """Open an event stream and collect what it sends.

        The client disconnects after ``max_events`` event frames or
        ``disconnect_after`` seconds, whichever comes first; a stream
        the server closes by itself ends the call earlier.

            result = await client.sse("/ticks", max_events=3)
            assert [e.data for e in result.events] == ["1", "2", "3"]
        """
        inbox = _Inbox(hold=True)
        capture = _EventCapture(inbox, max_events)
        scope = _scope("GET", path, {"accept": "text/event-stream", **(headers or {})})
        task = asyncio.create_task(self.app(scope, inbox, capture))

        if disconnect_after is not None:
            await asyncio.wait({task}, timeout=disconnect_after)
            inbox.hang_up()
        try:
            await asyncio.wait_for(task, timeout=(disconnect_after or 0) + 5.0)
        except TimeoutError:
            inbox.hang_up()
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        raw = capture.body.decode("utf-8", errors="replace")
        events, comments, retry = parse_sse_frames(raw)
        return SSETestResult(
            events=tuple(events),
            comments=tuple(comments),
            status=capture.status,
            retry=retry,
            headers=dict(capture.headers),
            raw=raw,
        )
