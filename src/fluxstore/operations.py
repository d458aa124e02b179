"""Operation synthesis — per-entity closures built from a schema.

For every entity name a store manages, build_operations() creates one
EntityOperations bundle whose closures are bound to that name, plus an
identifier table mapping derived names (getUser, updateUser,
addUserChangeListener, ...) to the same closures. The table is built once,
validated for collisions, and never changes afterwards.

Derivation rule: the first character of the entity name is upper-cased and
the rest is kept as is ("userProfile" -> "UserProfile").
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Callable

from fluxstore._batching import NotificationQueue
from fluxstore.channel import EventChannel
from fluxstore.errors import ConversionError, SchemaCollisionError, SchemaError
from fluxstore.snapshot import FrozenDict, FrozenList, SnapshotState, freeze, is_empty, is_structured, thaw

# operation kind -> identifier template
IDENTIFIER_TEMPLATES: dict[str, str] = {
    "get": "get{}",
    "update": "update{}",
    "add_change_listener": "add{}ChangeListener",
    "remove_change_listener": "remove{}ChangeListener",
    "get_error": "getError{}",
    "update_error": "updateError{}",
    "add_error_listener": "add{}ErrorListener",
    "remove_error_listener": "remove{}ErrorListener",
}

OPERATION_KINDS = tuple(IDENTIFIER_TEMPLATES)


def capitalize(name: str) -> str:
    return name[:1].upper() + name[1:]


def change_event(name: str) -> str:
    return f"{name}:change"


def error_event(name: str) -> str:
    return f"{name}:error"


def derive_identifiers(name: str) -> dict[str, str]:
    """Map each operation kind to its public identifier for entity name."""
    cap = capitalize(name)
    return {kind: template.format(cap) for kind, template in IDENTIFIER_TEMPLATES.items()}


@dataclass(frozen=True)
class EntityOperations:
    """The operations generated for one entity."""

    name: str
    get: Callable[[], Any]
    update: Callable[[Any, Any], None]
    add_change_listener: Callable[[Callable], None]
    remove_change_listener: Callable[[Callable], None]
    get_error: Callable[[], Any]
    update_error: Callable[[Any], None]
    add_error_listener: Callable[[Callable], None]
    remove_error_listener: Callable[[Callable], None]

    def __getitem__(self, kind: str) -> Callable:
        if kind not in IDENTIFIER_TEMPLATES:
            raise KeyError(kind)
        return getattr(self, kind)


def freeze_error(raw: Any) -> FrozenList | FrozenDict:
    """Errors are stored as a sequence when given one, as a mapping otherwise."""
    if isinstance(raw, (list, tuple)):
        return FrozenList(freeze(item) for item in raw)
    if raw is None:
        return FrozenDict()
    if isinstance(raw, Mapping):
        return freeze(raw)
    raise ConversionError(f"Cannot store {type(raw).__name__} as an error; expected a sequence or a mapping")


def entity_operations(
    name: str,
    state: SnapshotState,
    channel: EventChannel,
    queue: NotificationQueue,
) -> EntityOperations:
    """Build the closures for one entity."""
    on_change = change_event(name)
    on_error = error_event(name)

    def get() -> Any:
        if not state.data.has(name):
            return None
        value = state.data[name]
        if not is_structured(value):
            return value
        if is_empty(value):
            return None
        return thaw(value)

    def update(raw: Any, status: Any = None) -> None:
        frozen = freeze(raw)
        state.data = state.data.set(name, frozen)
        state.status = state.status.set(name, status)
        queue.push(on_change, {"property": name, "status": status})

    def add_change_listener(callback: Callable) -> None:
        channel.add_listener(on_change, callback)

    def remove_change_listener(callback: Callable) -> None:
        channel.remove_listener(on_change, callback)

    def get_error() -> Any:
        if not state.error.has(name):
            return None
        return thaw(state.error[name])

    def update_error(raw: Any) -> None:
        frozen = freeze_error(raw)
        state.error = state.error.set(name, frozen)
        queue.push(on_error)

    def add_error_listener(callback: Callable) -> None:
        channel.add_listener(on_error, callback)

    def remove_error_listener(callback: Callable) -> None:
        channel.remove_listener(on_error, callback)

    return EntityOperations(
        name=name,
        get=get,
        update=update,
        add_change_listener=add_change_listener,
        remove_change_listener=remove_change_listener,
        get_error=get_error,
        update_error=update_error,
        add_error_listener=add_error_listener,
        remove_error_listener=remove_error_listener,
    )


def validate_entity_names(names: Iterable[Any], reserved: Iterable[str] = ()) -> dict[str, str]:
    """Check that names derive distinct identifiers.

    Returns identifier -> entity name. Raises SchemaError for names that are
    not non-empty strings, SchemaCollisionError when two names derive the
    same identifier or an identifier is in reserved.
    """
    reserved = frozenset(reserved)
    owners: dict[str, str] = {}
    for name in names:
        if not isinstance(name, str) or not name:
            raise SchemaError(f"Entity names must be non-empty strings, got {name!r}")
        for identifier in derive_identifiers(name).values():
            if identifier in reserved:
                raise SchemaCollisionError(identifier, (name,), reserved=True)
            if identifier in owners:
                raise SchemaCollisionError(identifier, (owners[identifier], name))
            owners[identifier] = name
    return owners


def build_operations(
    names: Iterable[str],
    state: SnapshotState,
    channel: EventChannel,
    queue: NotificationQueue,
    *,
    reserved: Iterable[str] = (),
) -> tuple[dict[str, EntityOperations], dict[str, Callable]]:
    """Build every entity's operations and the derived-identifier table."""
    names = list(names)
    validate_entity_names(names, reserved)
    bundles: dict[str, EntityOperations] = {}
    identifiers: dict[str, Callable] = {}
    for name in names:
        bundle = entity_operations(name, state, channel, queue)
        bundles[name] = bundle
        for kind, identifier in derive_identifiers(name).items():
            identifiers[identifier] = bundle[kind]
    return bundles, identifiers


def route_identifier(action_type: str, name: str) -> str:
    """Identifier a dispatched action of action_type resolves to for entity name."""
    return f"{action_type}{capitalize(name)}"


def build_routes(bundles: Mapping[str, EntityOperations]) -> dict[str, Callable[[Any, Any], None]]:
    """Map route identifiers to callables taking (payload, status).

    Only the mutating operations are reachable from a dispatch; error updates
    ignore the status argument.
    """
    routes: dict[str, Callable[[Any, Any], None]] = {}
    for name, bundle in bundles.items():
        routes[route_identifier("update", name)] = bundle.update
        routes[route_identifier("updateError", name)] = _without_status(bundle.update_error)
    return routes


def _without_status(operation: Callable[[Any], None]) -> Callable[[Any, Any], None]:
    def _route(payload: Any, status: Any = None) -> None:
        operation(payload)

    return _route
