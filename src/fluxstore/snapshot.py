"""Immutable snapshots — persistent entity-keyed mappings.

A Snapshot never changes after creation. set() returns a new Snapshot that
shares every other key's value with the old one; only the replaced slot is
new. Values are frozen on the way in (freeze) and converted back to plain
Python structures on the way out (thaw), so callers never hold a reference
into the store's internals.

Conversion table:
    dict / Mapping  <->  FrozenDict
    list            <->  FrozenList
    tuple           <->  tuple (items frozen)
    set / frozenset  ->  frozenset  ->  set
    anything else is opaque and stored verbatim.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Iterator

from fluxstore.errors import ConversionError


class FrozenDict(Mapping):
    """Read-only mapping produced by freeze()."""

    __slots__ = ("_data",)

    def __init__(self, data: Mapping | None = None) -> None:
        self._data = dict(data) if data else {}

    def __getitem__(self, key):
        return self._data[key]

    def __iter__(self) -> Iterator:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"FrozenDict({self._data!r})"


class FrozenList(tuple):
    """Read-only sequence produced by freeze() from a list."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"FrozenList({list(self)!r})"


_STRUCTURED = (FrozenDict, FrozenList, tuple, frozenset)


def freeze(value: Any) -> Any:
    """Convert a plain value into its deeply immutable form.

    Raises ConversionError for structures that contain themselves.
    """
    return _freeze(value, set())


def _freeze(value: Any, path: set[int]) -> Any:
    if isinstance(value, (FrozenDict, frozenset)):
        return value
    if isinstance(value, Mapping):
        with _visiting(value, path):
            return FrozenDict({key: _freeze(item, path) for key, item in value.items()})
    if isinstance(value, list):
        with _visiting(value, path):
            return FrozenList(_freeze(item, path) for item in value)
    if type(value) is tuple:
        with _visiting(value, path):
            return tuple(_freeze(item, path) for item in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(value)
    return value


class _visiting:
    """Track containers on the current freeze path to reject cycles."""

    __slots__ = ("_marker", "_path")

    def __init__(self, container: object, path: set[int]) -> None:
        self._marker = id(container)
        self._path = path

    def __enter__(self) -> None:
        if self._marker in self._path:
            raise ConversionError("Cannot freeze a structure that contains itself")
        self._path.add(self._marker)

    def __exit__(self, *exc_info) -> None:
        self._path.discard(self._marker)


def thaw(value: Any) -> Any:
    """Convert a frozen value back to plain Python structures."""
    if isinstance(value, FrozenDict):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, FrozenList):
        return [thaw(item) for item in value]
    if type(value) is tuple:
        return tuple(thaw(item) for item in value)
    if isinstance(value, frozenset):
        return set(value)
    return value


def is_structured(value: Any) -> bool:
    return isinstance(value, _STRUCTURED)


def is_empty(value: Any) -> bool:
    """True for None and for structures with zero entries. Scalars are never empty."""
    if value is None:
        return True
    return is_structured(value) and len(value) == 0


class Snapshot(Mapping):
    """Persistent mapping from entity name to a frozen value."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Mapping[str, Any] | None = None) -> None:
        self._entries: dict[str, Any] = dict(entries) if entries else {}

    def __getitem__(self, key: str) -> Any:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def has(self, key: str) -> bool:
        return key in self._entries

    def set(self, key: str, value: Any) -> Snapshot:
        """Return a new Snapshot with key replaced. Other values are shared."""
        entries = dict(self._entries)
        entries[key] = value
        replaced = Snapshot.__new__(Snapshot)
        replaced._entries = entries
        return replaced

    def __repr__(self) -> str:
        return f"Snapshot({self._entries!r})"


class SnapshotState:
    """The three snapshots a store owns: data, status and error.

    The attributes are replaced, never mutated: each write swaps in a new
    Snapshot, so a reference taken earlier keeps seeing the old state.
    """

    __slots__ = ("data", "status", "error")

    def __init__(self) -> None:
        self.data = Snapshot()
        self.status = Snapshot()
        self.error = Snapshot()
