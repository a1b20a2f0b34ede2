"""Response transform pipeline.

A transform inspects the outgoing response and either leaves it alone
(returns ``None``) or returns a ``TransformResult`` overriding any of
body, headers, and status::

    def stamp(ctx, response):
        return TransformResult(headers={"x-served-by": "warble"})

    def shout(ctx, response):
        if response.content_type.startswith("text/plain"):
            return TransformResult(body=lambda prior: prior.upper())

    app.use(TransformMiddleware(stamp, shout))

``body`` may be a value (``str`` or ``bytes``) or a callable that
receives the prior body. The prior body is read at most once per
pipeline run, and only when something actually needs it.
"""

from __future__ import annotations

import re
from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, TypeAlias

from warble._internal.invoke import invoke
from warble.http.response import AnyResponse, Response, SSEResponse, StreamingResponse

if TYPE_CHECKING:
    from warble.context import RequestContext
    from warble.middleware.protocol import Next

_TEXTUAL = re.compile(r"\btext/|/json\b", re.IGNORECASE)

_UNSET: Any = object()


@dataclass(frozen=True, slots=True)
class TransformResult:
    """Overrides produced by one transform. Omitted fields keep their prior value."""

    body: Any = _UNSET
    headers: Mapping[str, str] | None = None
    status: int | None = None

    @property
    def has_body(self) -> bool:
        return self.body is not _UNSET


Transform: TypeAlias = "Callable[[RequestContext, AnyResponse], Any]"


class _PriorBody:
    """Reads the body of the response entering the pipeline, once."""

    __slots__ = ("_loaded", "_response", "_value")

    def __init__(self, response: AnyResponse) -> None:
        self._response = response
        self._loaded = False
        self._value: str | bytes = b""

    @property
    def loaded(self) -> bool:
        return self._loaded

    def replace(self, value: str | bytes) -> None:
        self._value = value
        self._loaded = True

    async def get(self) -> str | bytes:
        if not self._loaded:
            self._value = await _read_body(self._response)
            self._loaded = True
        return self._value


async def _read_body(response: AnyResponse) -> str | bytes:
    textual = bool(_TEXTUAL.search(response.content_type))
    if isinstance(response, Response):
        return response.text if textual else response.body_bytes
    if isinstance(response, StreamingResponse):
        parts: list[bytes] = []
        if isinstance(response.chunks, AsyncIterator):
            async for chunk in response.chunks:
                parts.append(chunk.encode("utf-8") if isinstance(chunk, str) else chunk)
        else:
            for chunk in response.chunks:
                parts.append(chunk.encode("utf-8") if isinstance(chunk, str) else chunk)
        raw = b"".join(parts)
        return raw.decode("utf-8") if textual else raw
    raise TypeError(f"Cannot read the body of {type(response).__name__}")


def _merge_headers(
    response: AnyResponse,
    overrides: Mapping[str, str] | None,
) -> AnyResponse:
    if overrides:
        for name, value in overrides.items():
            response = response.set_header(name, value)
    return response.without_header("content-length")


async def apply_transforms(
    ctx: RequestContext,
    response: AnyResponse,
    transforms: Sequence[Transform],
) -> AnyResponse:
    """Fold *response* through *transforms* in order.

    With no transforms the same object comes back. Event-stream
    responses accept header and status overrides only.
    """
    if not transforms:
        return response

    prior = _PriorBody(response)
    current = response
    for transform in transforms:
        result = await invoke(transform, ctx, current)
        if result is None:
            continue

        status = result.status if result.status is not None else current.status

        if isinstance(current, SSEResponse):
            if result.has_body:
                raise TypeError("An event-stream response body cannot be replaced")
            current = _merge_headers(replace(current, status=status), result.headers)
            continue

        if result.has_body:
            body = result.body
            if callable(body):
                body = await invoke(body, await prior.get())
            prior.replace(body)
        else:
            body = await prior.get()

        merged = _merge_headers(current, result.headers)
        current = Response(
            body=body,
            status=status,
            content_type=merged.content_type,
            headers=merged.headers,
        )
    return current


class TransformMiddleware:
    """Run a transform pipeline over every downstream response."""

    __slots__ = ("transforms",)

    def __init__(self, *transforms: Transform) -> None:
        self.transforms: tuple[Transform, ...] = transforms

    async def __call__(self, ctx: RequestContext, next: Next) -> AnyResponse:
        response = await next()
        return await apply_transforms(ctx, response, self.transforms)
