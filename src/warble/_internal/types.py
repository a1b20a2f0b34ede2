"""Shared type aliases used across warble modules."""

from collections.abc import Callable
from typing import Any, TypeAlias

# Route handler: receives the RequestContext, returns a response
Handler: TypeAlias = Callable[..., Any]

# Global error handler: receives (exc, ctx), returns a response
ErrorHandler: TypeAlias = Callable[..., Any]

# Lifecycle hook: zero-argument, sync or async
Hook: TypeAlias = Callable[[], Any]
