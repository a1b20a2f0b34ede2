"""SSE session: the lifecycle of one event-stream connection.

A session moves ``starting -> open -> closed``. It is created by a
handler (usually through ``ctx.sse()``), opened by the ASGI SSE driver
once response headers are on the wire, and closed exactly once: by the
handler, by the peer going away, or by its linked ``AbortSignal``.

Frames are written synchronously into an anyio memory object stream;
the driver drains that stream into ASGI ``send()``. Writes never raise:
they return ``False`` when the session is not open or the stream is
gone, and a failed write closes the session.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import AsyncIterator, Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from warble.http.response import SSEResponse
from warble.realtime.abort import AbortSignal
from warble.realtime.events import SSEEvent, comment_frame, format_data, retry_frame

logger = logging.getLogger("warble.sse")


class SessionState(StrEnum):
    STARTING = "starting"
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True, slots=True)
class SSEOptions:
    """Per-stream settings.

    ``keepalive_interval`` of ``None`` or ``0`` disables keepalive
    comments. ``retry_ms`` sends a ``retry:`` hint right after opening.
    """

    headers: Mapping[str, str] = field(default_factory=dict)
    retry_ms: int | None = None
    disable_proxy_buffering: bool = True
    keepalive_interval: float | None = 15.0
    keepalive_comment: str = "keepalive"


class SSESession:
    """One Server-Sent Events connection.

    Usage inside a handler::

        async def clock(session: SSESession, ctx: RequestContext) -> None:
            while session.send("tick", time.time()):
                await asyncio.sleep(1)

        @app.get("/clock")
        def stream(ctx):
            return ctx.sse(clock, retry_ms=3000)
    """

    __slots__ = (
        "_cleanup",
        "_keepalive",
        "_options",
        "_ready",
        "_receive_stream",
        "_send_stream",
        "_settled",
        "_state",
    )

    def __init__(
        self,
        options: SSEOptions | None = None,
        *,
        signal: AbortSignal | None = None,
    ) -> None:
        self._options = options or SSEOptions()
        self._state = SessionState.STARTING
        self._cleanup: list[Callable[[], Any]] = []
        self._keepalive: asyncio.TimerHandle | None = None
        # Set once, when the stream becomes writable.
        self._ready = asyncio.Event()
        # Set on open or close, whichever happens first.
        self._settled = asyncio.Event()
        send_stream, receive_stream = anyio.create_memory_object_stream[bytes](math.inf)
        self._send_stream: MemoryObjectSendStream[bytes] = send_stream
        self._receive_stream: MemoryObjectReceiveStream[bytes] = receive_stream

        if signal is not None:
            if signal.aborted:
                self.close()
            else:
                signal.add_listener(self.close)
                self.add_cleanup(lambda: signal.remove_listener(self.close))

    # -- State --

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state is SessionState.CLOSED

    @property
    def ready(self) -> asyncio.Event:
        """Set when the stream became writable. Never cleared."""
        return self._ready

    @property
    def options(self) -> SSEOptions:
        return self._options

    async def wait_ready(self) -> bool:
        """Wait until the session opens or closes; ``True`` if open."""
        await self._settled.wait()
        return self._state is SessionState.OPEN

    def open(self) -> bool:
        """Mark the stream writable. Only the first call has any effect.

        Emits the retry hint (if configured) and starts keepalive.
        Must be called from a running event loop.
        """
        if self._state is not SessionState.STARTING:
            return False
        self._state = SessionState.OPEN
        self._ready.set()
        self._settled.set()
        retry_ms = self._options.retry_ms
        if retry_ms is not None and retry_ms >= 0:
            self._write(lambda: retry_frame(retry_ms))
        self._start_keepalive()
        return True

    def add_cleanup(self, action: Callable[[], Any]) -> None:
        """Register *action* to run once on close.

        Runs immediately if the session is already closed.
        """
        if self._state is SessionState.CLOSED:
            self._run_cleanup([action])
            return
        self._cleanup.append(action)

    def close(self) -> None:
        """Close the session. Idempotent."""
        if self._state is SessionState.CLOSED:
            return
        self._state = SessionState.CLOSED
        self._settled.set()
        actions, self._cleanup = self._cleanup, []
        self._run_cleanup(actions)
        self._send_stream.close()

    # -- Writes --

    def send(self, event: str, data: Any = None) -> bool:
        """Send a named event. Returns ``False`` if nothing was written."""
        return self._write(lambda: SSEEvent(data=format_data(data), event=event).encode())

    async def send_when_ready(self, event: str, data: Any = None) -> bool:
        """Wait for the session to open, then ``send()``."""
        if not await self.wait_ready():
            return False
        return self.send(event, data)

    def comment(self, text: str | None = None) -> bool:
        """Send a comment frame (defaults to the keepalive text)."""
        if text is None:
            text = self._options.keepalive_comment
        return self._write(lambda: comment_frame(text))

    def error(self, message: str) -> bool:
        """Send an ``error`` event."""
        return self.send("error", message)

    # -- Driver side --

    @property
    def response(self) -> SSEResponse:
        """A bare ``SSEResponse`` carrying this session's protocol headers."""
        return SSEResponse(session=self, headers=self.protocol_headers())

    def protocol_headers(self) -> tuple[tuple[str, str], ...]:
        """Event-stream headers; user headers override the defaults."""
        merged: dict[str, tuple[str, str]] = {}
        defaults = [
            ("cache-control", "no-cache, no-transform"),
            ("connection", "keep-alive"),
            ("content-encoding", "identity"),
        ]
        if self._options.disable_proxy_buffering:
            defaults.append(("x-accel-buffering", "no"))
        for name, value in [*defaults, *self._options.headers.items()]:
            merged[name.lower()] = (name, value)
        return tuple(merged.values())

    async def frames(self) -> AsyncIterator[bytes]:
        """Yield encoded frames until the session is closed and drained."""
        async with self._receive_stream:
            async for chunk in self._receive_stream:
                yield chunk

    # -- Internal --

    def _write(self, render: Callable[[], str]) -> bool:
        """Render and enqueue one frame; rendering is skipped unless open."""
        if self._state is not SessionState.OPEN:
            return False
        try:
            self._send_stream.send_nowait(render().encode("utf-8"))
        except Exception:
            logger.debug("SSE write failed, closing session", exc_info=True)
            self.close()
            return False
        return True

    def _start_keepalive(self) -> None:
        interval = self._options.keepalive_interval
        if not interval or interval <= 0:
            return
        loop = asyncio.get_running_loop()

        def tick() -> None:
            self._keepalive = None
            if self.closed:
                return
            self.comment(self._options.keepalive_comment)
            if not self.closed:
                self._keepalive = loop.call_later(interval, tick)

        self._keepalive = loop.call_later(interval, tick)
        self.add_cleanup(self._stop_keepalive)

    def _stop_keepalive(self) -> None:
        if self._keepalive is not None:
            self._keepalive.cancel()
            self._keepalive = None

    @staticmethod
    def _run_cleanup(actions: list[Callable[[], Any]]) -> None:
        for action in actions:
            try:
                action()
            except Exception:
                logger.exception("SSE cleanup action %r failed", action)

    def __repr__(self) -> str:
        return f"<SSESession {self._state.value}>"


def every(
    session: SSESession,
    interval: float,
    event: str,
    fn: Callable[[], Any],
) -> Callable[[], None]:
    """Send ``fn()`` as *event* every *interval* seconds.

    ``None`` results are skipped. The timer stops by itself once the
    session closes or a send fails. Returns a ``stop()`` callable that
    cancels the timer and closes the session.
    """
    loop = asyncio.get_running_loop()
    handle: asyncio.TimerHandle | None = None

    def tick() -> None:
        nonlocal handle
        handle = None
        if session.closed:
            return
        data = fn()
        if data is not None and not session.send(event, data):
            return
        handle = loop.call_later(interval, tick)

    def cancel() -> None:
        nonlocal handle
        if handle is not None:
            handle.cancel()
            handle = None

    def stop() -> None:
        cancel()
        session.close()

    handle = loop.call_later(interval, tick)
    session.add_cleanup(cancel)
    return stop
