"""Form body parsing for URL-encoded and multipart bodies.

URL-encoded bodies go through stdlib ``urllib.parse``. Multipart bodies
are tokenized by ``python-multipart`` (``pip install warble[forms]``)
and assembled here into fields and in-memory uploads.
"""

from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs

from warble._internal.multimap import MultiValues
from warble.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class UploadFile:
    """A file part of a multipart body, held in memory."""

    filename: str
    content_type: str
    size: int
    _content: bytes

    async def read(self) -> bytes:
        return self._content

    def __repr__(self) -> str:
        return f"UploadFile({self.filename!r}, {self.content_type!r}, {self.size} bytes)"


class FormData(MultiValues):
    """Parsed form fields plus uploaded files.

    Usage::

        form = await ctx.read_form()
        title = form["title"]
        tags = form.get_list("tag")
        avatar = form.files.get("avatar")
    """

    __slots__ = ("_files",)

    def __init__(
        self,
        data: dict[str, list[str]] | None = None,
        files: dict[str, UploadFile] | None = None,
    ) -> None:
        super().__init__(data)
        self._files: dict[str, UploadFile] = files or {}

    @property
    def files(self) -> dict[str, UploadFile]:
        """Uploaded files by field name (last part wins per name)."""
        return dict(self._files)


async def parse_form_data(body: bytes, content_type: str) -> FormData:
    """Parse a form body according to its Content-Type.

    Raises:
        ValueError: The content type is not a form encoding, or a
            multipart body has no boundary.
        ConfigurationError: Multipart parsing is needed but
            ``python-multipart`` is not installed.
    """
    media_type = content_type.split(";", 1)[0].strip().lower()
    if media_type == "application/x-www-form-urlencoded":
        return FormData(parse_qs(body.decode("utf-8"), keep_blank_values=True))
    if media_type == "multipart/form-data":
        return _parse_multipart(body, content_type)
    msg = f"Unsupported form content type: {content_type!r}"
    raise ValueError(msg)


class _PartCollector:
    """Receives python-multipart callbacks and assembles parts."""

    def __init__(self, parse_options_header: Any) -> None:
        self._parse_options = parse_options_header
        self.fields: dict[str, list[str]] = {}
        self.files: dict[str, UploadFile] = {}
        self._reset()

    def _reset(self) -> None:
        self._headers: dict[str, str] = {}
        self._header_name = ""
        self._header_value = ""
        self._buffer = bytearray()

    def callbacks(self) -> dict[str, Any]:
        return {
            "on_part_begin": self._reset,
            "on_header_field": self.header_field,
            "on_header_value": self.header_value,
            "on_header_end": self.header_end,
            "on_part_data": self.part_data,
            "on_part_end": self.part_end,
        }

    def header_field(self, chunk: bytes, start: int, end: int) -> None:
        self._header_name += chunk[start:end].decode("latin-1")

    def header_value(self, chunk: bytes, start: int, end: int) -> None:
        self._header_value += chunk[start:end].decode("latin-1")

    def header_end(self) -> None:
        self._headers[self._header_name.lower()] = self._header_value
        self._header_name = ""
        self._header_value = ""

    def part_data(self, chunk: bytes, start: int, end: int) -> None:
        self._buffer.extend(chunk[start:end])

    def part_end(self) -> None:
        disposition = self._headers.get("content-disposition", "")
        _, params = self._parse_options(disposition.encode("latin-1"))
        name = params.get(b"name")
        if name is None:
            return
        field_name = name.decode("utf-8")
        filename = params.get(b"filename")
        if filename is None:
            text = self._buffer.decode("utf-8", errors="replace")
            self.fields.setdefault(field_name, []).append(text)
            return
        content = bytes(self._buffer)
        self.files[field_name] = UploadFile(
            filename=filename.decode("utf-8"),
            content_type=self._headers.get("content-type", "application/octet-stream"),
            size=len(content),
            _content=content,
        )


def _parse_multipart(body: bytes, content_type: str) -> FormData:
    try:
        from python_multipart.multipart import MultipartParser, parse_options_header
    except ImportError:
        msg = (
            "Multipart form parsing requires the 'python-multipart' package. "
            "Install it with: pip install warble[forms]"
        )
        raise ConfigurationError(msg) from None

    _, options = parse_options_header(content_type.encode("latin-1"))
    boundary = options.get(b"boundary")
    if boundary is None:
        msg = "Multipart form data missing boundary parameter"
        raise ValueError(msg)

    collector = _PartCollector(parse_options_header)
    parser = MultipartParser(boundary, collector.callbacks())
    parser.write(body)
    parser.finalize()
    return FormData(collector.fields, collector.files)
