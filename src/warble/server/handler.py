"""ASGI handler: translates ASGI scope/messages to warble types.

The only component besides the senders that touches raw ASGI. Builds
the ``Request``, links an ``AbortSignal`` to client disconnects, runs
the application, and sends the result back through ASGI ``send()``.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

from warble._internal.asgi import Receive, Scope, Send
from warble.errors import HTTPError
from warble.http.request import Request
from warble.http.response import AnyResponse, SSEResponse, StreamingResponse, text_response
from warble.realtime.abort import AbortSignal
from warble.server.sender import send_response, send_streaming_response
from warble.server.sse import send_sse

if TYPE_CHECKING:
    from warble.app import App

logger = logging.getLogger("warble.server")


def _watch_disconnect(receive: Receive, signal: AbortSignal) -> Receive:
    """Wrap *receive* so an ``http.disconnect`` aborts *signal*."""

    async def watched() -> Any:
        message = await receive()
        if message.get("type") == "http.disconnect":
            signal.abort("client disconnected")
        return message

    return watched


def http_error_response(exc: HTTPError) -> AnyResponse:
    """Plain-text response for an ``HTTPError`` nobody handled."""
    try:
        phrase = HTTPStatus(exc.status).phrase
    except ValueError:
        phrase = "Error"
    response = text_response(exc.detail or phrase, exc.status)
    for name, value in exc.headers:
        response = response.with_header(name, value)
    return response


async def handle_request(app: App, scope: Scope, receive: Receive, send: Send) -> None:
    """Process a single HTTP request through the full pipeline."""
    signal = AbortSignal()
    receive = _watch_disconnect(receive, signal)
    request = Request.from_asgi(scope, receive, max_body=app.config.max_content_length)

    try:
        response = await app.handle(request, signal=signal)
    except HTTPError as exc:
        response = http_error_response(exc)
    except Exception:
        logger.exception("Unhandled error for %s %s", request.method, request.path)
        response = text_response("Internal Server Error", 500)

    if isinstance(response, SSEResponse):
        await send_sse(response, send, receive)
    elif isinstance(response, StreamingResponse):
        await send_streaming_response(response, send)
    else:
        await send_response(response, send)
