"""Exceptions raised by fluxstore.

Unknown entities in a dispatched action are not errors: they are skipped
silently by the dispatch handler, so there is no exception for them here.
"""

from __future__ import annotations


class FluxStoreError(Exception):
    """Base class for every error raised by fluxstore."""


class SchemaError(FluxStoreError):
    """The entity definition cannot be turned into a store."""


class SchemaCollisionError(SchemaError):
    """Two entity names derive the same operation identifier."""

    def __init__(self, identifier: str, entities: tuple[str, ...], *, reserved: bool = False) -> None:
        self.identifier = identifier
        self.entities = entities
        self.reserved = reserved
        names = ", ".join(repr(e) for e in entities)
        if reserved:
            message = f"Operation identifier {identifier!r} for {names} shadows a Store attribute"
        else:
            message = f"Operation identifier {identifier!r} is derived more than once ({names})"
        super().__init__(message)


class RoutingError(FluxStoreError):
    """An action type resolves to no generated or custom operation."""

    def __init__(self, entity: str, action_type: str) -> None:
        self.entity = entity
        self.action_type = action_type
        super().__init__(f"No operation handles action type {action_type!r} for entity {entity!r}")


class ConversionError(FluxStoreError):
    """A raw payload cannot be converted into its immutable form."""


class DispatchError(FluxStoreError):
    """The dispatcher was used out of order (re-entrant dispatch, bad wait_for)."""


class DefinitionError(FluxStoreError):
    """No entity definition is registered under the requested path."""
