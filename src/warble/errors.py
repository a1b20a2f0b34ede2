"""Warble exception hierarchy.

Shared across Router, App, dispatcher, and middleware so every module
raises and catches the same types.
"""

from dataclasses import dataclass


class WarbleError(Exception):
    """Base for all warble-specific errors."""


class ConfigurationError(WarbleError):
    """Raised when the application is assembled incorrectly.

    Always raised at construction time (route registration, state
    setup, mounting), never while serving a request.
    """


class RouteTemplateError(ConfigurationError):
    """A route template could not be compiled."""

    def __init__(self, template: str, reason: str) -> None:
        self.template = template
        self.reason = reason
        super().__init__(f"{reason}: {template!r}")


class StateCloneError(ConfigurationError):
    """A snapshot state template contains a value that cannot be cloned."""

    def __init__(self, location: str, value: object) -> None:
        self.location = location
        self.value_type = type(value)
        super().__init__(
            f"Snapshot state cannot clone {type(value).__name__} at {location}. "
            "Use shared_state() or state_factory() for non-data values, "
            "or pass a custom clone= function."
        )


@dataclass(frozen=True, slots=True)
class HTTPError(WarbleError):
    """An error that maps directly to an HTTP status code.

    Raised by handlers or middleware. Passed to the global error handler
    when one is registered; otherwise the ASGI entry point turns it into
    a plain-text response with the same status.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818
    """404: nothing handles the request path."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class MethodNotAllowed(HTTPError):  # noqa: N818
    """405: the path is routed, but not for this HTTP method.

    Carries an ``Allow`` header with the sorted, de-duplicated methods.
    """

    def __init__(self, allowed: frozenset[str] | set[str], detail: str = "") -> None:
        allow_value = ", ".join(sorted(allowed))
        default_detail = f"Method not allowed. Allowed methods: {allow_value}"
        super().__init__(
            status=405,
            detail=detail or default_detail,
            headers=(("Allow", allow_value),),
        )


class RequestTooLarge(HTTPError):  # noqa: N818
    """413: the request body exceeds ``AppConfig.max_content_length``."""

    def __init__(self, limit: int) -> None:
        super().__init__(status=413, detail=f"Request body exceeds {limit} bytes")
