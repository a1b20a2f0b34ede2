"""Query string parameters."""

from urllib.parse import parse_qs

from warble._internal.multimap import MultiValues


class QueryParams(MultiValues):
    """Parsed query string. Blank values are kept (``?flag=`` gives ``""``)."""

    __slots__ = ("_raw",)

    def __init__(self, query_string: str | bytes = "") -> None:
        if isinstance(query_string, bytes):
            query_string = query_string.decode("latin-1")
        super().__init__(parse_qs(query_string, keep_blank_values=True))
        self._raw: str = query_string

    @property
    def raw(self) -> str:
        """The undecoded query string, without the leading ``?``."""
        return self._raw
