"""Server-Sent Events driver over ASGI.

Sends the event-stream headers, opens the session, and then runs
concurrently until the session closes:

- **Drain**: forwards every frame the session writes to ASGI ``send``.
- **Producer**: the handler's producer, if the response carries one.
- **Disconnect monitor**: awaits ``http.disconnect`` and closes the session.

The stream ends with an empty final body message.
"""

import contextlib
import logging

import anyio

from warble._internal.asgi import Receive, Send
from warble.http.response import SSEResponse
from warble.server.sender import encode_headers

logger = logging.getLogger("warble.server")


async def send_sse(response: SSEResponse, send: Send, receive: Receive) -> None:
    """Stream *response* until its session closes or the client leaves."""
    session = response.session

    await send(
        {
            "type": "http.response.start",
            "status": response.status,
            "headers": encode_headers(response.content_type, response.headers),
        }
    )
    session.open()

    async def monitor_disconnect() -> None:
        while not session.closed:
            message = await receive()
            if message.get("type") == "http.disconnect":
                session.close()
                return

    async def run_producer() -> None:
        if response.producer is None:
            return
        try:
            await response.producer()
        except Exception:
            logger.exception("SSE producer failed")
            session.close()

    try:
        async with anyio.create_task_group() as tg:
            tg.start_soon(monitor_disconnect)
            tg.start_soon(run_producer)
            try:
                async with contextlib.aclosing(session.frames()) as frames:
                    async for frame in frames:
                        await send({"type": "http.response.body", "body": frame, "more_body": True})
            except OSError:
                logger.debug("SSE client went away mid-frame")
            finally:
                session.close()
                tg.cancel_scope.cancel()
    finally:
        session.close()
        with contextlib.suppress(RuntimeError, OSError):
            await send({"type": "http.response.body", "body": b"", "more_body": False})
