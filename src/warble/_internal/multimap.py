"""Read-only multi-valued string mapping.

``QueryParams`` and ``FormData`` both hold ``name -> [values]`` and
expose the first value through the ``Mapping`` interface.
"""

from collections.abc import Iterator, Mapping


class MultiValues(Mapping[str, str]):
    """``name -> [value, ...]`` where plain lookups see the first value.

    Blank values are kept; a name present with an empty list behaves as
    missing for ``get`` but still shows up in iteration.
    """

    __slots__ = ("_data",)

    def __init__(self, data: dict[str, list[str]] | None = None) -> None:
        self._data: dict[str, list[str]] = data or {}

    def __getitem__(self, key: str) -> str:
        return self._data[key][0]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        items = ", ".join(f"{k!r}: {self.get_list(k)!r}" for k in self)
        return f"{type(self).__name__}({{{items}}})"

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        values = self._data.get(key)
        return values[0] if values else default

    def get_list(self, key: str) -> list[str]:
        """Every value for *key*, in arrival order."""
        return list(self._data.get(key, ()))

    def to_dict(self) -> dict[str, list[str]]:
        """A copy of the underlying ``name -> values`` table."""
        return {key: list(values) for key, values in self._data.items()}
