"""Per-request application state.

An application picks exactly one strategy when it is constructed:

``shared``
    Every request sees the identical object. Mutations are visible to
    all requests; there is no locking.

``snapshot``
    Every request gets a deep copy of a template. The template is
    checked up front so values that cannot be copied faithfully
    (callables, open files, sockets, arbitrary objects) fail at
    construction instead of mid-request.

``factory``
    ``factory(request)`` builds fresh state for every request.

The strategy never changes after construction.
"""

from __future__ import annotations

import copy
import dataclasses
import datetime
import enum
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum
from fractions import Fraction
from typing import TYPE_CHECKING, Any

from warble.errors import StateCloneError

if TYPE_CHECKING:
    from warble.http.request import Request


class StateStrategy(StrEnum):
    SHARED = "shared"
    SNAPSHOT = "snapshot"
    FACTORY = "factory"


# Immutable leaves: copied by reference.
_ATOMIC_TYPES: tuple[type, ...] = (
    type(None),
    bool,
    int,
    float,
    complex,
    str,
    bytes,
    Decimal,
    Fraction,
    datetime.date,
    datetime.time,
    datetime.datetime,
    datetime.timedelta,
    uuid.UUID,
    enum.Enum,
)


def _validate(value: Any, location: str, seen: set[int]) -> None:
    """Walk *value* and raise ``StateCloneError`` on the first unsupported leaf."""
    if isinstance(value, _ATOMIC_TYPES):
        return
    if id(value) in seen:
        return
    if isinstance(value, (list, tuple, set, frozenset, bytearray, dict)):
        seen.add(id(value))
        if isinstance(value, bytearray):
            return
        if isinstance(value, dict):
            for key, item in value.items():
                _validate(key, f"{location}[{key!r}] (key)", seen)
                _validate(item, f"{location}[{key!r}]", seen)
            return
        if isinstance(value, (set, frozenset)):
            for item in value:
                _validate(item, f"{location}{{{item!r}}}", seen)
            return
        for index, item in enumerate(value):
            _validate(item, f"{location}[{index}]", seen)
        return
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        seen.add(id(value))
        for f in dataclasses.fields(value):
            _validate(getattr(value, f.name), f"{location}.{f.name}", seen)
        return
    raise StateCloneError(location, value)


def structured_clone(value: Any) -> Any:
    """Deep-copy *value*, preserving shared references and cycles."""
    return copy.deepcopy(value)


@dataclass(frozen=True, slots=True)
class StateProvider:
    """Produces the ``state`` for each request under one fixed strategy.

    Build one with :func:`shared_state`, :func:`snapshot_state`, or
    :func:`state_factory` rather than directly.
    """

    strategy: StateStrategy
    _acquire: Callable[[Request], Any]

    def acquire(self, request: Request) -> Any:
        """State for *request*."""
        return self._acquire(request)


def shared_state(value: Any) -> StateProvider:
    """Every request receives *value* itself."""
    return StateProvider(StateStrategy.SHARED, lambda _request: value)


def snapshot_state(
    value: Any,
    clone: Callable[[Any], Any] | None = None,
) -> StateProvider:
    """Every request receives a fresh deep copy of *value*.

    With the default clone, *value* must consist of plain data:
    scalars, strings, bytes, numbers, dates, UUIDs, enum members,
    lists, tuples, dicts, sets, and dataclass instances built from
    those. Anything else raises ``StateCloneError`` right here.

    A custom *clone* is trusted and skips the check.
    """
    if clone is None:
        _validate(value, "state", set())
        clone = structured_clone
    fn = clone
    return StateProvider(StateStrategy.SNAPSHOT, lambda _request: fn(value))


def state_factory(factory: Callable[[Request], Any]) -> StateProvider:
    """Every request receives ``factory(request)``."""
    return StateProvider(StateStrategy.FACTORY, factory)
