"""Actions — the unit of work a dispatcher hands to every store.

An Action names an operation kind (type) and carries per-entity payloads
(data) and per-entity status values (status). Stores only look at the
entity names in data; payload shapes are opaque.

Usage:
    Action("update", data={"user": {"id": 1}}, status={"user": "success"})
    Action.coerce({"type": "update", "data": {"user": {"id": 1}}})
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any


@dataclass(frozen=True)
class Action:
    type: str
    data: Mapping[str, Any] = field(default_factory=dict)
    status: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", MappingProxyType(dict(self.data or {})))
        object.__setattr__(self, "status", MappingProxyType(dict(self.status or {})))

    @classmethod
    def coerce(cls, action: Action | Mapping[str, Any]) -> Action:
        """Accept an Action or a plain mapping with type/data/status keys."""
        if isinstance(action, Action):
            return action
        if not isinstance(action, Mapping) or "type" not in action:
            raise TypeError(f"Expected an Action or a mapping with a 'type' key, got {action!r}")
        return cls(
            type=action["type"],
            data=action.get("data") or {},
            status=action.get("status") or {},
        )
