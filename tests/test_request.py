"""Tests for warble.http.request: frozen Request with async body access."""

import pytest

from warble.errors import RequestTooLarge
from warble.http.request import Request


def _make_scope(**overrides: object) -> dict[str, object]:
    """Build a minimal valid ASGI HTTP scope."""
    base: dict[str, object] = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "GET",
        "path": "/",
        "raw_path": b"/",
        "query_string": b"",
        "root_path": "",
        "headers": [],
        "server": ("localhost", 8000),
        "client": ("127.0.0.1", 54321),
    }
    base.update(overrides)
    return base


def _make_receive(*bodies: bytes):
    """Create an ASGI receive callable that yields bodies, counting reads."""
    messages = [
        {"type": "http.request", "body": body, "more_body": i < len(bodies) - 1}
        for i, body in enumerate(bodies)
    ] or [{"type": "http.request", "body": b"", "more_body": False}]
    it = iter(messages)

    async def receive():
        return next(it, {"type": "http.disconnect"})

    return receive


class TestFromASGI:
    def test_basic_fields(self) -> None:
        req = Request.from_asgi(_make_scope(method="post", path="/users"))
        assert req.method == "POST"
        assert req.path == "/users"
        assert req.server == ("localhost", 8000)
        assert req.client == ("127.0.0.1", 54321)

    def test_raw_path_kept_encoded(self) -> None:
        scope = _make_scope(path="/files/a/b", raw_path=b"/files/a%2Fb")
        req = Request.from_asgi(scope)
        assert req.path == "/files/a/b"
        assert req.raw_path == "/files/a%2Fb"

    def test_raw_path_falls_back_to_quoted_path(self) -> None:
        scope = _make_scope(path="/hello world", raw_path=None)
        assert Request.from_asgi(scope).raw_path == "/hello%20world"

    def test_headers_case_insensitive(self) -> None:
        scope = _make_scope(headers=[(b"X-Custom", b"v"), (b"accept", b"a"), (b"accept", b"b")])
        req = Request.from_asgi(scope)
        assert req.headers["x-custom"] == "v"
        assert req.headers.get_list("Accept") == ["a", "b"]

    def test_query(self) -> None:
        req = Request.from_asgi(_make_scope(query_string=b"a=1&a=2&b="))
        assert req.query["a"] == "1"
        assert req.query.get_list("a") == ["1", "2"]
        assert req.query["b"] == ""

    def test_url(self) -> None:
        scope = _make_scope(
            raw_path=b"/p%20q", path="/p q", query_string=b"x=1", headers=[(b"host", b"h.example")]
        )
        assert Request.from_asgi(scope).url == "http://h.example/p%20q?x=1"


class TestBody:
    async def test_multi_chunk_body(self) -> None:
        req = Request.from_asgi(_make_scope(), _make_receive(b"hel", b"lo"))
        assert await req.body() == b"hello"

    async def test_body_cached(self) -> None:
        req = Request.from_asgi(_make_scope(), _make_receive(b"once"))
        assert await req.body() == b"once"
        assert await req.body() == b"once"

    async def test_text_and_json(self) -> None:
        req = Request.build("POST", "/", body=b'{"a": [1]}')
        assert await req.json() == {"a": [1]}
        assert await req.text() == '{"a": [1]}'

    async def test_no_receive_means_empty_body(self) -> None:
        assert await Request.from_asgi(_make_scope()).body() == b""

    async def test_too_large_by_content_length(self) -> None:
        scope = _make_scope(headers=[(b"content-length", b"100")])
        req = Request.from_asgi(scope, _make_receive(b"x"), max_body=10)
        with pytest.raises(RequestTooLarge) as info:
            await req.body()
        assert info.value.status == 413

    async def test_too_large_while_streaming(self) -> None:
        req = Request.from_asgi(_make_scope(), _make_receive(b"12345", b"67890", b"!"), max_body=10)
        with pytest.raises(RequestTooLarge):
            await req.body()


class TestBuild:
    def test_splits_query_and_decodes_path(self) -> None:
        req = Request.build("get", "/a%20b?x=1")
        assert req.method == "GET"
        assert req.path == "/a b"
        assert req.raw_path == "/a%20b"
        assert req.query["x"] == "1"

    async def test_body(self) -> None:
        req = Request.build("POST", "/", headers={"Content-Type": "text/plain"}, body=b"hi")
        assert req.content_type == "text/plain"
        assert await req.text() == "hi"
