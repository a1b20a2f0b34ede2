"""Warble: a typed ASGI application core for server-rendered hypermedia.

Ordered routing, onion middleware, explicit per-request state, response
transforms, and abort-aware Server-Sent Events.

Basic usage::

    from warble import App

    app = App.snapshot_state({"count": 0})

    @app.get("/hello/:name")
    def hello(ctx):
        return ctx.text(f"Hello, {ctx.params['name']}!")

    app.run()
"""

__version__ = "0.1.0"
__all__ = [
    "AbortSignal",
    "AnyResponse",
    "App",
    "AppConfig",
    "ConfigurationError",
    "HTTPError",
    "MethodNotAllowed",
    "Middleware",
    "Next",
    "NotFound",
    "Request",
    "RequestContext",
    "Response",
    "RouteMeta",
    "SSEEvent",
    "SSEResponse",
    "SSESession",
    "StreamingResponse",
    "TransformResult",
    "WarbleError",
    "get_context",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import warble`` fast while providing a clean top-level API.
    """
    if name == "App":
        from warble.app import App

        return App

    if name == "AppConfig":
        from warble.config import AppConfig

        return AppConfig

    if name == "Request":
        from warble.http.request import Request

        return Request

    if name in ("AnyResponse", "Response", "SSEResponse", "StreamingResponse"):
        from warble.http import response as _resp

        return getattr(_resp, name)

    if name in ("AbortSignal", "SSEEvent", "SSESession"):
        from warble import realtime as _rt

        return getattr(_rt, name)

    if name in ("Middleware", "Next"):
        from warble.middleware import protocol as _mw

        return getattr(_mw, name)

    if name in ("RequestContext", "get_context"):
        from warble import context as _ctx

        return getattr(_ctx, name)

    if name == "RouteMeta":
        from warble.routing.route import RouteMeta

        return RouteMeta

    if name == "TransformResult":
        from warble.transforms import TransformResult

        return TransformResult

    if name in ("ConfigurationError", "HTTPError", "MethodNotAllowed", "NotFound", "WarbleError"):
        from warble import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
