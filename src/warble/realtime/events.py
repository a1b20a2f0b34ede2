"""SSE wire frames.

Three frame kinds are produced::

    event: <name>          one ``data:`` line per payload line,
    data: <line>           then a blank line
    ...

    : <text>               comment / keepalive

    retry: <ms>            reconnection hint
"""

import json as json_module
import re
from dataclasses import dataclass
from typing import Any

_LINE_BREAK = re.compile(r"\r?\n")


@dataclass(frozen=True, slots=True)
class SSEEvent:
    """A single Server-Sent Event."""

    data: str
    event: str | None = None
    id: str | None = None
    retry: int | None = None

    def encode(self) -> str:
        """Serialize to SSE wire format."""
        lines: list[str] = []
        if self.event:
            lines.append(f"event: {self.event}")
        if self.id:
            lines.append(f"id: {self.id}")
        if self.retry is not None:
            lines.append(f"retry: {self.retry}")
        lines.extend(f"data: {line}" for line in _LINE_BREAK.split(self.data))
        return "\n".join(lines) + "\n\n"


def comment_frame(text: str | None = None) -> str:
    """A comment frame; a bare ``:`` when *text* is empty."""
    text = (text or "").strip()
    return f": {text}\n\n" if text else ":\n\n"


def retry_frame(retry_ms: int) -> str:
    return f"retry: {retry_ms}\n\n"


def format_data(value: Any) -> str:
    """Convert an event payload to its ``data:`` text.

    ``None`` becomes empty, ``str`` as-is, numbers and bools via ``str()``,
    bytes decoded as UTF-8, everything else JSON-encoded.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, int, float)):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    return json_module.dumps(value, default=str)
