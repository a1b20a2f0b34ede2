"""Tests for warble.http.forms: URL-encoded and multipart parsing."""

import pytest

from warble.app import App
from warble.http.forms import FormData, parse_form_data
from warble.testing import TestClient


class TestUrlEncoded:
    async def test_fields_and_lists(self) -> None:
        form = await parse_form_data(
            b"title=Hello+World&tag=a&tag=b&empty=", "application/x-www-form-urlencoded"
        )
        assert form["title"] == "Hello World"
        assert form.get_list("tag") == ["a", "b"]
        assert form["empty"] == ""
        assert form.get("missing", "d") == "d"
        assert len(form) == 3

    async def test_unsupported_content_type(self) -> None:
        with pytest.raises(ValueError, match="Unsupported form content type"):
            await parse_form_data(b"{}", "application/json")

    async def test_read_form_from_context(self) -> None:
        app = App()

        @app.post("/submit")
        async def submit(ctx):
            form = await ctx.read_form()
            return f"{form['name']}:{len(form.get_list('x'))}"

        async with TestClient(app) as client:
            response = await client.post(
                "/submit",
                body=b"name=ada&x=1&x=2",
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        assert response.text == "ada:2"


class TestMultipart:
    async def test_fields_and_files(self) -> None:
        boundary = "XyZ"
        body = (
            f"--{boundary}\r\n"
            'Content-Disposition: form-data; name="title"\r\n\r\n'
            "Report\r\n"
            f"--{boundary}\r\n"
            'Content-Disposition: form-data; name="upload"; filename="notes.txt"\r\n'
            "Content-Type: text/plain\r\n\r\n"
            "line one\r\n"
            f"--{boundary}--\r\n"
        ).encode()
        form = await parse_form_data(body, f"multipart/form-data; boundary={boundary}")
        assert isinstance(form, FormData)
        assert form["title"] == "Report"
        upload = form.files["upload"]
        assert upload.filename == "notes.txt"
        assert upload.content_type == "text/plain"
        assert upload.size == len(b"line one")
        assert await upload.read() == b"line one"

    async def test_missing_boundary(self) -> None:
        with pytest.raises(ValueError, match="boundary"):
            await parse_form_data(b"", "multipart/form-data")
