"""ASGI response sending: translates warble responses to ASGI messages.

Handles single-body responses and chunked streaming responses. Event
streams go through ``warble.server.sse``.
"""

import logging
from collections.abc import AsyncIterator

from warble._internal.asgi import Send
from warble.http.response import Response, StreamingResponse, body_allowed

logger = logging.getLogger("warble.server")


def encode_headers(
    content_type: str,
    headers: tuple[tuple[str, str], ...],
) -> list[tuple[bytes, bytes]]:
    """Raw ASGI header pairs. Any ``content-length`` is dropped."""
    raw: list[tuple[bytes, bytes]] = [(b"content-type", content_type.encode("latin-1"))]
    for name, value in headers:
        lower = name.lower()
        if lower in ("content-length", "content-type"):
            continue
        raw.append((lower.encode("latin-1"), value.encode("latin-1")))
    return raw


async def send_response(response: Response, send: Send) -> None:
    """Send an in-memory response with a computed ``content-length``.

    1xx, 204, and 304 responses go out with an empty body.
    """
    raw_headers = encode_headers(response.content_type, response.headers)
    body = response.body_bytes if body_allowed(response.status) else b""
    raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))

    await send({"type": "http.response.start", "status": response.status, "headers": raw_headers})
    await send({"type": "http.response.body", "body": body})


async def send_streaming_response(response: StreamingResponse, send: Send) -> None:
    """Send each chunk as a ``more_body`` message, then an empty final body.

    A mid-stream failure is logged and ends the stream early; headers
    are already on the wire so the status cannot change.
    """
    raw_headers = encode_headers(response.content_type, response.headers)
    await send({"type": "http.response.start", "status": response.status, "headers": raw_headers})

    async def emit(chunk: str | bytes) -> None:
        if chunk:
            data = chunk.encode("utf-8") if isinstance(chunk, str) else chunk
            await send({"type": "http.response.body", "body": data, "more_body": True})

    if body_allowed(response.status):
        try:
            if isinstance(response.chunks, AsyncIterator):
                async for chunk in response.chunks:
                    await emit(chunk)
            else:
                for chunk in response.chunks:
                    await emit(chunk)
        except Exception:
            logger.exception("Streaming response failed mid-stream")

    await send({"type": "http.response.body", "body": b"", "more_body": False})
