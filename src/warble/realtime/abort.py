"""One-shot cancellation signal.

The ASGI handler creates one ``AbortSignal`` per request and aborts it
when the client disconnects. SSE sessions subscribe to it so a dropped
connection stops keepalive timers and producers. Callers can create
their own signals to impose timeouts.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger("warble.sse")


class AbortSignal:
    """A signal that fires once.

    Listeners run synchronously inside ``abort()``, in registration
    order, at most once each. A failing listener is logged and does
    not stop the others.
    """

    __slots__ = ("_aborted", "_event", "_listeners", "_reason")

    def __init__(self) -> None:
        self._aborted = False
        self._reason: Any = None
        self._listeners: list[Callable[[], Any]] = []
        self._event: asyncio.Event | None = None

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def reason(self) -> Any:
        return self._reason

    def add_listener(self, listener: Callable[[], Any]) -> None:
        """Run *listener* when the signal fires. No-op once aborted."""
        if not self._aborted:
            self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[], Any]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def abort(self, reason: Any = None) -> None:
        """Fire the signal. Later calls do nothing."""
        if self._aborted:
            return
        self._aborted = True
        self._reason = reason
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            try:
                listener()
            except Exception:
                logger.exception("Abort listener %r failed", listener)
        if self._event is not None:
            self._event.set()

    async def wait(self) -> None:
        """Block until the signal fires."""
        if self._aborted:
            return
        if self._event is None:
            self._event = asyncio.Event()
        await self._event.wait()

    def __repr__(self) -> str:
        return f"<AbortSignal aborted={self._aborted}>"
