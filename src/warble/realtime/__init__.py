"""Server-Sent Events: wire frames, sessions, and cancellation signals."""

from warble.realtime.abort import AbortSignal
from warble.realtime.events import SSEEvent, comment_frame, format_data, retry_frame
from warble.realtime.session import SessionState, SSEOptions, SSESession, every

__all__ = [
    "AbortSignal",
    "SSEEvent",
    "SSEOptions",
    "SSESession",
    "SessionState",
    "comment_frame",
    "every",
    "format_data",
    "retry_frame",
]
