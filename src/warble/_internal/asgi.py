"""Raw ASGI type aliases.

Only the ASGI entry point, the senders, and the test client touch these.
Handlers and middleware see ``Request`` and ``RequestContext`` instead.
"""

from collections.abc import Awaitable, Callable, MutableMapping
from typing import Any, TypeAlias

Scope: TypeAlias = MutableMapping[str, Any]
Receive: TypeAlias = Callable[[], Awaitable[MutableMapping[str, Any]]]
Send: TypeAlias = Callable[[MutableMapping[str, Any]], Awaitable[None]]
