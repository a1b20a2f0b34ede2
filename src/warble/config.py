"""Application configuration.

A frozen dataclass read by the app, the ASGI handler, and ``ctx.sse()``.
Build one up front and pass it to ``App``.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(debug=True, port=3000, sse_retry_ms=2000)
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False

    # SSE defaults applied by ctx.sse() unless overridden per stream
    sse_keepalive_interval: float = 15.0
    sse_keepalive_comment: str = "keepalive"
    sse_retry_ms: int | None = None
    sse_disable_proxy_buffering: bool = True

    # Correlation id echo header (None = don't echo)
    request_id_header: str | None = None

    # Limits
    max_content_length: int = 16 * 1024 * 1024  # 16 MB
