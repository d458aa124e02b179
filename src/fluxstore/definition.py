"""Entity definitions — where stores look up their schema.

A definition maps entity names to metadata. Stores only use the names.
A store built with an explicit definition never touches the registry; one
built with definition_path asks the registry, optionally layering a custom
definition on top.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from fluxstore.errors import DefinitionError

Definition = Mapping[str, Any]


class DefinitionRegistry:
    """Named entity definitions."""

    def __init__(self) -> None:
        self._definitions: dict[str, dict[str, Any]] = {}

    def register(self, path: str, definition: Definition) -> None:
        self._definitions[path] = dict(definition)

    def unregister(self, path: str) -> None:
        self._definitions.pop(path, None)

    def __contains__(self, path: str) -> bool:
        return path in self._definitions

    def get_entity_informations(
        self,
        path: str | None,
        custom_definition: Definition | None = None,
    ) -> dict[str, Any]:
        """Return the definition registered at path, merged with custom_definition.

        A None path starts from an empty definition, so a store can be built
        from custom_definition alone.
        """
        if path is None:
            base: dict[str, Any] = {}
        else:
            try:
                base = self._definitions[path]
            except KeyError:
                raise DefinitionError(f"No entity definition registered at {path!r}") from None
        merged = dict(base)
        if custom_definition:
            merged.update(custom_definition)
        return merged


definitions = DefinitionRegistry()
