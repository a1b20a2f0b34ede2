"""Tests for warble.app: registration, composition, lifecycle, ASGI entry."""

import pytest

from warble.app import App, join_path
from warble.config import AppConfig
from warble.errors import ConfigurationError, RouteTemplateError
from warble.http.request import Request
from warble.routing.route import RouteMeta
from warble.testing import TestClient


class TestRegistration:
    def test_decorator_returns_handler(self) -> None:
        app = App()

        @app.get("/")
        def index(ctx):
            return "ok"

        assert callable(index)
        assert index.__name__ == "index"

    def test_bad_template_fails_at_registration(self) -> None:
        app = App()
        with pytest.raises(RouteTemplateError):
            app.add_route("GET", "/:", lambda ctx: "x")

    def test_non_callable_middleware(self) -> None:
        with pytest.raises(ConfigurationError, match="callable"):
            App().use("nope")  # type: ignore[arg-type]

    def test_routes_listing(self) -> None:
        app = App()
        meta = RouteMeta(summary="Show user")
        app.add_route("GET", "/users/:id", lambda ctx: "x", meta=meta)
        app.add_route("post", "/users", lambda ctx: "x")

        info = app.routes()
        assert [(r.method, r.path, r.keys) for r in info] == [
            ("GET", "/users/:id", ("id",)),
            ("POST", "/users", ()),
        ]
        assert info[0].meta is meta

    def test_route_with_several_methods(self) -> None:
        app = App()

        @app.route("/x", methods=("GET", "POST"))
        def x(ctx):
            return ctx.method

        assert [r.method for r in app.routes()] == ["GET", "POST"]

    async def test_all_methods(self) -> None:
        app = App()

        @app.all("/any")
        def any_method(ctx):
            return ctx.method

        assert len(app.routes()) == 7
        for method in ("GET", "PUT", "DELETE"):
            response = await app.handle(Request.build(method, "/any"))
            assert response.text == method

    async def test_verb_decorators(self) -> None:
        app = App()
        for verb in ("get", "post", "put", "patch", "delete", "options", "head"):
            getattr(app, verb)("/v")(lambda ctx: ctx.method)
        for method in ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"):
            response = await app.handle(Request.build(method, "/v"))
            assert response.text == method


class TestJsonRoutes:
    class Item:
        @staticmethod
        def parse(data):
            if "name" not in data:
                raise ValueError("name is required")
            return {"name": data["name"].title()}

    async def test_post_json_parses_body(self) -> None:
        app = App()
        route = app.post_json("/items", self.Item, lambda ctx, item: ctx.json(item, status=201))
        assert route.method == "POST"

        async with TestClient(app) as client:
            response = await client.post("/items", json={"name": "lamp"})
        assert response.status == 201
        assert response.text == '{"name": "Lamp"}'

    async def test_put_json_async_handler(self) -> None:
        app = App()

        async def update(ctx, item):
            return f"{ctx.params['id']}={item['name']}"

        app.put_json("/items/:id", self.Item, update)
        async with TestClient(app) as client:
            response = await client.put("/items/3", json={"name": "desk"})
        assert response.text == "3=Desk"

    async def test_parse_errors_reach_error_handler(self) -> None:
        app = App()
        app.post_json("/items", self.Item, lambda ctx, item: "never")
        app.on_error(lambda exc, ctx: ctx.text(str(exc), status=422))

        async with TestClient(app) as client:
            response = await client.post("/items", json={})
        assert response.status == 422
        assert response.text == "name is required"


class TestGroups:
    @pytest.mark.parametrize(
        ("base", "path", "expected"),
        [
            ("/api", "/users", "/api/users"),
            ("/api/", "users", "/api/users"),
            ("", "/x", "/x"),
            ("/", "/x", "/x"),
        ],
    )
    def test_join_path(self, base: str, path: str, expected: str) -> None:
        assert join_path(base, path) == expected

    async def test_nested_groups(self) -> None:
        app = App()
        api = app.group("/api")
        v1 = api.group("/v1")

        @v1.get("/users/:id")
        def user(ctx):
            return ctx.params["id"]

        @api.post("/ping")
        def ping(ctx):
            return "pong"

        assert [r.path for r in app.routes()] == ["/api/v1/users/:id", "/api/ping"]
        response = await app.handle(Request.build("GET", "/api/v1/users/9"))
        assert response.text == "9"


class TestMount:
    async def test_child_sees_stripped_path(self) -> None:
        child = App.shared_state({"name": "child"})

        @child.get("/users/:id")
        def user(ctx):
            return f"{ctx.state['name']}:{ctx.path}:{ctx.params['id']}"

        parent = App.shared_state({"name": "parent"})
        parent.mount("/admin", child)

        response = await parent.handle(Request.build("GET", "/admin/users/5"))
        assert response.text == "child:/users/5:5"

    async def test_base_maps_to_root(self) -> None:
        child = App()
        child.get("/")(lambda ctx: "child root")
        parent = App()
        parent.mount("/admin/", child)

        response = await parent.handle(Request.build("GET", "/admin"))
        assert response.text == "child root"

    async def test_child_middleware_and_not_found(self) -> None:
        child = App()

        async def tag(ctx, next):
            response = await next()
            return response.with_header("X-Child", "1")

        child.use(tag)
        parent = App()
        parent.mount("/c", child)

        response = await parent.handle(Request.build("GET", "/c/missing"))
        assert response.status == 404
        assert response.text == "Not found: GET /missing"
        assert response.header("x-child") == "1"

    async def test_request_id_shared_with_child(self) -> None:
        child = App()
        child.get("/")(lambda ctx: ctx.request_id)
        parent = App()
        parent.mount("/c", child)

        response = await parent.handle(Request.build("GET", "/c"), request_id="same")
        assert response.text == "same"

    async def test_sibling_paths_not_mounted(self) -> None:
        child = App()
        child.get("/")(lambda ctx: "child")
        parent = App()
        parent.mount("/c", child)

        response = await parent.handle(Request.build("GET", "/cat"))
        assert response.status == 404
        assert response.text == "Not found: GET /cat"

    async def test_non_ascii_base(self) -> None:
        child = App()

        @child.get("/users/:id")
        def user(ctx):
            return f"{ctx.path}|{ctx.request.raw_path}|{ctx.params['id']}"

        parent = App()
        parent.mount("/café", child)

        response = await parent.handle(Request.build("GET", "/caf%C3%A9/users/%C3%BC"))
        assert response.status == 200
        assert response.text == "/users/ü|/users/%C3%BC|ü"

    async def test_encoded_base_through_client(self) -> None:
        child = App()
        child.get("/")(lambda ctx: "docs root")
        child.get("/page")(lambda ctx: ctx.path)
        parent = App()
        parent.mount("/my%20docs", child)

        async with TestClient(parent) as client:
            root = await client.get("/my docs")
            page = await client.get("/my docs/page")
        assert root.text == "docs root"
        assert page.text == "/page"

    def test_empty_base_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            App().mount("", App())
        with pytest.raises(ConfigurationError):
            App().mount("/", App())


class TestFreeze:
    async def test_registration_after_handle_raises(self) -> None:
        app = App()
        app.get("/")(lambda ctx: "ok")
        await app.handle(Request.build("GET", "/"))

        with pytest.raises(RuntimeError, match="after it has started"):
            app.get("/late")(lambda ctx: "late")
        with pytest.raises(RuntimeError):
            app.use(lambda ctx, next: next())
        with pytest.raises(RuntimeError):
            app.on_error(lambda exc, ctx: None)


class TestLifecycle:
    async def test_hooks_run_with_client(self) -> None:
        app = App()
        events: list[str] = []

        @app.on_startup
        async def start():
            events.append("start")

        @app.on_shutdown
        def stop():
            events.append("stop")

        async with TestClient(app):
            assert events == ["start"]
        assert events == ["start", "stop"]

    async def test_asgi_lifespan(self) -> None:
        app = App()
        events: list[str] = []
        app.on_startup(lambda: events.append("start"))
        app.on_shutdown(lambda: events.append("stop"))

        incoming = iter([{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}])
        sent: list[str] = []

        async def receive():
            return next(incoming)

        async def send(message):
            sent.append(message["type"])

        await app({"type": "lifespan"}, receive, send)
        assert events == ["start", "stop"]
        assert sent == ["lifespan.startup.complete", "lifespan.shutdown.complete"]

    async def test_failed_startup_reported(self) -> None:
        app = App()

        @app.on_startup
        def broken():
            raise RuntimeError("no database")

        async def receive():
            return {"type": "lifespan.startup"}

        sent: list[dict] = []

        async def send(message):
            sent.append(message)

        await app({"type": "lifespan"}, receive, send)
        assert sent == [{"type": "lifespan.startup.failed", "message": "no database"}]


class TestAsgi:
    async def test_request_id_header_from_config(self) -> None:
        app = App(config=AppConfig(request_id_header="X-Request-Id"))
        app.get("/")(lambda ctx: "ok")
        async with TestClient(app) as client:
            response = await client.get("/")
        assert len(response.header("x-request-id")) == 32

    async def test_encoded_slash_stays_in_param(self) -> None:
        app = App()

        @app.get("/files/:name")
        def show(ctx):
            return ctx.params["name"]

        async with TestClient(app) as client:
            response = await client.get("/files/a%2Fb")
        assert response.status == 200
        assert response.text == "a/b"

    async def test_body_limit(self) -> None:
        app = App(config=AppConfig(max_content_length=4))

        @app.post("/upload")
        async def upload(ctx):
            return await ctx.read_text()

        async with TestClient(app) as client:
            response = await client.post("/upload", body=b"too long")
        assert response.status == 413

    async def test_head_request_and_query(self) -> None:
        app = App()

        @app.get("/search")
        def search(ctx):
            return ctx.query("q", "")

        async with TestClient(app) as client:
            response = await client.get("/search?q=warble")
        assert response.text == "warble"
        assert response.header("content-length") == "6"
