"""HTTP responses with a chainable ``.with_*()`` API.

Each transformation returns a new object. ``Response`` holds its body in
memory, ``StreamingResponse`` yields chunks, and ``SSEResponse`` wraps a
live event-stream session. All three share the header/status API so
middleware can modify any of them uniformly.
"""

from __future__ import annotations

import json as json_module
from collections.abc import AsyncIterator, Callable, Iterator, Mapping
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, TypeAlias

if TYPE_CHECKING:
    from warble.realtime.session import SSESession

# RFC 9110: these responses never carry content.
NO_BODY_STATUSES = frozenset({204, 304})


def body_allowed(status: int) -> bool:
    """Whether a status code permits a response body."""
    return not (100 <= status < 200 or status in NO_BODY_STATUSES)


class _HeaderOps:
    """Header and status transformations shared by every response type.

    Content-Type lives in its own ``content_type`` field; the header
    methods route that name there so callers can treat it like any
    other header.
    """

    __slots__ = ()

    headers: tuple[tuple[str, str], ...]
    content_type: str

    def with_status(self, status: int) -> Any:
        """Return a copy with a different status code."""
        return replace(self, status=status)  # type: ignore[type-var]

    def with_header(self, name: str, value: str) -> Any:
        """Return a copy with an additional header (appended)."""
        if name.lower() == "content-type":
            return self.with_content_type(value)
        return replace(self, headers=(*self.headers, (name, value)))  # type: ignore[type-var]

    def with_headers(self, headers: Mapping[str, str]) -> Any:
        """Return a copy with additional headers (appended)."""
        result = self
        for name, value in headers.items():
            result = result.with_header(name, value)
        return result

    def set_header(self, name: str, value: str) -> Any:
        """Return a copy where *name* has exactly one value, *value*."""
        return self.without_header(name).with_header(name, value)

    def without_header(self, name: str) -> Any:
        """Return a copy with every *name* header removed."""
        lower = name.lower()
        kept = tuple((k, v) for k, v in self.headers if k.lower() != lower)
        return replace(self, headers=kept)  # type: ignore[type-var]

    def with_content_type(self, content_type: str) -> Any:
        """Return a copy with a different content type."""
        return replace(self, content_type=content_type)  # type: ignore[type-var]

    def header(self, name: str) -> str | None:
        """First value of header *name* (case-insensitive), or ``None``."""
        lower = name.lower()
        if lower == "content-type":
            return self.content_type
        for key, value in self.headers:
            if key.lower() == lower:
                return value
        return None


@dataclass(frozen=True, slots=True)
class Response(_HeaderOps):
    """An HTTP response with an in-memory body."""

    body: str | bytes = ""
    status: int = 200
    content_type: str = "text/plain; charset=utf-8"
    headers: tuple[tuple[str, str], ...] = ()

    @property
    def body_bytes(self) -> bytes:
        """Body as bytes."""
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return self.body

    @property
    def text(self) -> str:
        """Body as string."""
        if isinstance(self.body, bytes):
            return self.body.decode("utf-8")
        return self.body


@dataclass(frozen=True, slots=True)
class StreamingResponse(_HeaderOps):
    """A response whose body is produced chunk by chunk.

    The chunk iterator can be consumed only once.
    """

    chunks: Iterator[str | bytes] | AsyncIterator[str | bytes]
    status: int = 200
    content_type: str = "text/html; charset=utf-8"
    headers: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True, slots=True)
class SSEResponse(_HeaderOps):
    """A committed Server-Sent Events stream.

    ``session`` is the live stream; ``producer`` (if any) is run by the
    ASGI SSE driver once the session is open. ``headers`` starts with
    the session's protocol headers; middleware may append more.
    """

    session: SSESession
    producer: Callable[[], Any] | None = None
    status: int = 200
    content_type: str = "text/event-stream; charset=utf-8"
    headers: tuple[tuple[str, str], ...] = ()


AnyResponse: TypeAlias = "Response | StreamingResponse | SSEResponse"


# -- Response helpers --


def _init(
    default_type: str,
    headers: Mapping[str, str] | None,
) -> tuple[str, tuple[tuple[str, str], ...]]:
    """Split an explicit content-type out of *headers*."""
    content_type = default_type
    extra: list[tuple[str, str]] = []
    for name, value in (headers or {}).items():
        if name.lower() == "content-type":
            content_type = value
        else:
            extra.append((name, value))
    return content_type, tuple(extra)


def text_response(
    text: str,
    status: int = 200,
    headers: Mapping[str, str] | None = None,
) -> Response:
    """Plain-text response. 204 and 304 drop the body."""
    content_type, extra = _init("text/plain; charset=utf-8", headers)
    body = text if body_allowed(status) else ""
    return Response(body=body, status=status, content_type=content_type, headers=extra)


def html_response(
    html: str,
    status: int = 200,
    headers: Mapping[str, str] | None = None,
) -> Response:
    content_type, extra = _init("text/html; charset=utf-8", headers)
    return Response(body=html, status=status, content_type=content_type, headers=extra)


def json_response(
    obj: Any,
    status: int = 200,
    headers: Mapping[str, str] | None = None,
) -> Response:
    content_type, extra = _init("application/json; charset=utf-8", headers)
    return Response(
        body=json_module.dumps(obj),
        status=status,
        content_type=content_type,
        headers=extra,
    )


def js_response(
    js: str,
    cache_control: str = "no-store",
    status: int = 200,
    headers: Mapping[str, str] | None = None,
) -> Response:
    """JavaScript module response; not cached by default."""
    content_type, extra = _init(
        "text/javascript; charset=utf-8",
        {"cache-control": cache_control, **(headers or {})},
    )
    return Response(body=js, status=status, content_type=content_type, headers=extra)


def method_not_allowed(path: str, allow: str) -> Response:
    """405 with a readable body and the ``Allow`` header."""
    body = "\n".join(["Method not allowed.", "", f"Endpoint: {path}", f"Allowed: {allow}"])
    return text_response(body, 405, {"Allow": allow})


def not_found_response(method: str, path: str) -> Response:
    return text_response(f"Not found: {method} {path}", 404)
