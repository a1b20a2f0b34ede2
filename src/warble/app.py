"""Warble application class.

Mutable during setup (routes, middleware, hooks). Frozen once it starts
serving: the first ASGI call, ``handle()``, or ``run()``.

Route templates are compiled when they are registered, so a bad
template fails at import time rather than on the first request.
"""

from __future__ import annotations

import inspect
import threading
from collections.abc import Callable, Sequence
from dataclasses import replace
from typing import Any
from urllib.parse import quote, unquote

from warble._internal.asgi import Receive, Scope, Send
from warble._internal.types import ErrorHandler, Handler, Hook
from warble.config import AppConfig
from warble.context import RequestContext, context_var
from warble.errors import ConfigurationError
from warble.http.request import Request
from warble.http.response import AnyResponse
from warble.realtime.abort import AbortSignal
from warble.routing.route import Route, RouteInfo, RouteMeta
from warble.routing.router import Router
from warble.routing.template import compile_template
from warble.server.dispatch import MountedMiddleware, dispatch
from warble.server.handler import handle_request
from warble.state import (
    StateProvider,
    StateStrategy,
    shared_state,
    snapshot_state,
    state_factory,
)

HTTP_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD")

# Characters left unescaped in an encoded path segment.
_PATH_SAFE = "/:@!$&'()*+,;=-._~"


def join_path(base: str, path: str) -> str:
    """``join_path("/api/", "users")`` -> ``"/api/users"``."""
    b = base[:-1] if base.endswith("/") else base
    p = path if path.startswith("/") else f"/{path}"
    return f"{b}{p}" if b else p


class App:
    """The warble application.

    Usage::

        app = App.snapshot_state({"visits": 0})

        @app.get("/users/:id")
        async def show(ctx):
            return ctx.json({"id": ctx.params["id"]})

    State is fixed at construction: pass a ``StateProvider`` or use one
    of the ``shared_state`` / ``snapshot_state`` / ``state_factory``
    constructors. Without one, every request sees ``state=None``.

    Thread safety:
        Registration is single-threaded (decorators at import time). The
        freeze transition uses a Lock + double-check so concurrent first
        requests freeze exactly once.
    """

    __slots__ = (
        "_error_handler",
        "_freeze_lock",
        "_frozen",
        "_middleware",
        "_not_found",
        "_router",
        "_shutdown_hooks",
        "_startup_hooks",
        "_state",
        "config",
    )

    def __init__(
        self,
        state: StateProvider | None = None,
        config: AppConfig | None = None,
    ) -> None:
        self.config: AppConfig = config or AppConfig()
        self._state: StateProvider = state or shared_state(None)
        self._router = Router()
        self._middleware: list[MountedMiddleware] = []
        self._error_handler: ErrorHandler | None = None
        self._not_found: Handler | None = None
        self._startup_hooks: list[Hook] = []
        self._shutdown_hooks: list[Hook] = []
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()

    # -- Construction by state strategy --

    @classmethod
    def shared_state(cls, value: Any, config: AppConfig | None = None) -> App:
        """Every request sees *value* itself."""
        return cls(shared_state(value), config)

    @classmethod
    def snapshot_state(
        cls,
        value: Any,
        config: AppConfig | None = None,
        *,
        clone: Callable[[Any], Any] | None = None,
    ) -> App:
        """Every request sees a deep copy of *value*."""
        return cls(snapshot_state(value, clone), config)

    @classmethod
    def state_factory(
        cls,
        factory: Callable[[Request], Any],
        config: AppConfig | None = None,
    ) -> App:
        """Every request sees ``factory(request)``."""
        return cls(state_factory(factory), config)

    @property
    def state_strategy(self) -> StateStrategy:
        return self._state.strategy

    # -- Middleware --

    def use(self, middleware: Callable[..., Any], *, prefix: str = "") -> App:
        """Add a middleware, optionally limited to a path prefix.

        Middleware runs in registration order. A prefix applies to the
        path itself and everything below it (``/api`` covers ``/api``
        and ``/api/users`` but not ``/apiary``).
        """
        self._check_not_frozen()
        if not callable(middleware):
            raise ConfigurationError(f"Middleware must be callable, got {type(middleware).__name__}")
        self._middleware.append(MountedMiddleware(prefix, middleware))
        return self

    # -- Route registration --

    def add_route(
        self,
        method: str,
        path: str,
        handler: Handler,
        *,
        middleware: Sequence[Callable[..., Any]] = (),
        meta: RouteMeta | None = None,
    ) -> Route:
        """Compile *path* and append a route. Returns the new route."""
        self._check_not_frozen()
        route = Route(
            method=method.upper(),
            compiled=compile_template(path),
            handler=handler,
            middleware=tuple(middleware),
            meta=meta,
        )
        self._router.add(route)
        return route

    def route(
        self,
        path: str,
        *,
        methods: Sequence[str] = ("GET",),
        middleware: Sequence[Callable[..., Any]] = (),
        meta: RouteMeta | None = None,
    ) -> Callable[[Handler], Handler]:
        """Register a handler for *methods* via decorator."""

        def decorator(func: Handler) -> Handler:
            for method in methods:
                self.add_route(method, path, func, middleware=middleware, meta=meta)
            return func

        return decorator

    def get(self, path: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        return self.route(path, methods=("GET",), **kwargs)

    def post(self, path: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        return self.route(path, methods=("POST",), **kwargs)

    def put(self, path: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        return self.route(path, methods=("PUT",), **kwargs)

    def patch(self, path: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        return self.route(path, methods=("PATCH",), **kwargs)

    def delete(self, path: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        return self.route(path, methods=("DELETE",), **kwargs)

    def options(self, path: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        return self.route(path, methods=("OPTIONS",), **kwargs)

    def head(self, path: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        return self.route(path, methods=("HEAD",), **kwargs)

    def all(self, path: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        """Register one handler under every standard method."""
        return self.route(path, methods=HTTP_METHODS, **kwargs)

    def post_json(self, path: str, schema: Any, handler: Callable[..., Any], **kwargs: Any) -> Route:
        """POST route whose JSON body is validated with ``schema.parse``.

        *handler* is called as ``handler(ctx, body)``.
        """
        return self.add_route("POST", path, _json_body_handler(schema, handler), **kwargs)

    def put_json(self, path: str, schema: Any, handler: Callable[..., Any], **kwargs: Any) -> Route:
        """PUT counterpart of :meth:`post_json`."""
        return self.add_route("PUT", path, _json_body_handler(schema, handler), **kwargs)

    def group(self, base: str) -> RouteGroup:
        """Register routes under a shared path prefix::

            api = app.group("/api")

            @api.get("/users")
            def users(ctx): ...
        """
        return RouteGroup(self, base)

    def routes(self) -> list[RouteInfo]:
        """Every registered route, in registration order."""
        return self._router.info()

    # -- Fallbacks --

    def on_error(self, handler: ErrorHandler) -> ErrorHandler:
        """Set the global error handler, called as ``handler(exc, ctx)``.

        It must return a response. If it raises, a plain
        ``500 Internal Server Error`` is sent instead.
        """
        self._check_not_frozen()
        self._error_handler = handler
        return handler

    def not_found(self, handler: Handler) -> Handler:
        """Set the handler for requests no route matches under any method."""
        self._check_not_frozen()
        self._not_found = handler
        return handler

    # -- Composition --

    def mount(self, base: str, child: App) -> App:
        """Serve *child* under *base*.

        The child keeps its own state, routes, and middleware. The base
        is stripped from the path before the child sees the request.
        """
        prefix = unquote(base[:-1] if base.endswith("/") else base)
        if not prefix:
            raise ConfigurationError("mount(base, child) requires a non-empty base path")
        # Routing runs on the encoded path, handlers see the decoded one.
        raw_prefix = quote(prefix, safe=_PATH_SAFE)

        async def mounted(ctx: RequestContext, _next: Any) -> AnyResponse:
            request = ctx.request
            child_request = replace(
                request,
                path=request.path[len(prefix):] or "/",
                raw_path=request.raw_path[len(raw_prefix):] or "/",
            )
            return await child.handle(
                child_request,
                signal=ctx.signal,
                request_id=ctx.request_id,
            )

        return self.use(mounted, prefix=raw_prefix)

    # -- Lifecycle hooks --

    def on_startup(self, func: Hook) -> Hook:
        """Register an async or sync startup hook via decorator.

        Hooks run in registration order during ASGI lifespan startup.
        """
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Hook) -> Hook:
        """Register an async or sync shutdown hook via decorator."""
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    # -- Serving --

    async def handle(
        self,
        request: Request,
        *,
        signal: AbortSignal | None = None,
        request_id: str | None = None,
    ) -> AnyResponse:
        """Run one request through middleware, routing, and error handling.

        Exceptions escape only when no error handler is registered.
        """
        self._ensure_frozen()
        ctx = RequestContext(
            request,
            state=self._state.acquire(request),
            config=self.config,
            signal=signal,
            request_id=request_id,
        )
        token = context_var.set(ctx)
        try:
            response = await dispatch(
                ctx,
                router=self._router,
                middleware=self._middleware,
                not_found=self._not_found,
                error_handler=self._error_handler,
            )
        finally:
            context_var.reset(token)

        if self.config.request_id_header:
            response = response.set_header(self.config.request_id_header, ctx.request_id)
        return response

    def run(self, host: str | None = None, port: int | None = None) -> None:
        """Start a pounce server for this app (needs ``warble[server]``)."""
        self._ensure_frozen()
        from warble.server.dev import run_server

        run_server(
            self,
            host or self.config.host,
            port or self.config.port,
            reload=self.config.debug,
        )

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return
        if scope["type"] != "http":
            return
        await handle_request(self, scope, receive, send)

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        self._ensure_frozen()

        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    await self.startup()
                except Exception as exc:
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})

            elif msg_type == "lifespan.shutdown":
                await self.shutdown()
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def startup(self) -> None:
        """Run the startup hooks in order."""
        for hook in self._startup_hooks:
            result = hook()
            if inspect.isawaitable(result):
                await result

    async def shutdown(self) -> None:
        """Run the shutdown hooks in order."""
        for hook in self._shutdown_hooks:
            result = hook()
            if inspect.isawaitable(result):
                await result

    # -- Internal --

    def _ensure_frozen(self) -> None:
        if self._frozen:
            return
        with self._freeze_lock:
            self._frozen = True

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register routes, middleware, and handlers first."
            )
            raise RuntimeError(msg)


class RouteGroup:
    """Route registration under a shared base path. See :meth:`App.group`."""

    __slots__ = ("_app", "base")

    def __init__(self, app: App, base: str) -> None:
        self._app = app
        self.base = base

    def route(
        self,
        path: str,
        *,
        methods: Sequence[str] = ("GET",),
        **kwargs: Any,
    ) -> Callable[[Handler], Handler]:
        return self._app.route(join_path(self.base, path), methods=methods, **kwargs)

    def get(self, path: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        return self.route(path, methods=("GET",), **kwargs)

    def post(self, path: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        return self.route(path, methods=("POST",), **kwargs)

    def put(self, path: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        return self.route(path, methods=("PUT",), **kwargs)

    def patch(self, path: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        return self.route(path, methods=("PATCH",), **kwargs)

    def delete(self, path: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        return self.route(path, methods=("DELETE",), **kwargs)

    def group(self, base: str) -> RouteGroup:
        return RouteGroup(self._app, join_path(self.base, base))


def _json_body_handler(schema: Any, handler: Callable[..., Any]) -> Handler:
    async def json_body(ctx: RequestContext) -> Any:
        body = await ctx.read_json_with(schema)
        result = handler(ctx, body)
        if inspect.isawaitable(result):
            result = await result
        return result

    return json_body
