"""Store — schema-driven entity state downstream of a dispatcher.

A Store is built once from an entity definition. For every entity it
generates get/update/listen operations (see fluxstore.operations), keeps
data, status and error snapshots, and registers a single handler with the
dispatcher. Each dispatched action is applied in one synchronous pass; the
notifications it produces are delivered afterwards, in order, so listeners
always see every entity touched by the action already updated.

Usage:
    store = Store({"definition": {"user": {}}})
    store.addUserChangeListener(lambda event: print(event["status"]))
    app_dispatcher.dispatch(Action("update", {"user": {"id": 1}}, {"user": "success"}))
    store.getUser()  # {"id": 1}
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Protocol, Union

from fluxstore._batching import Notification, NotificationQueue
from fluxstore.action import Action
from fluxstore.channel import EventChannel, Listener
from fluxstore.definition import DefinitionRegistry, definitions as default_definitions
from fluxstore.dispatcher import Dispatcher, app_dispatcher
from fluxstore.errors import ConversionError, RoutingError
from fluxstore.operations import EntityOperations, build_operations, build_routes, route_identifier
from fluxstore.scheduler import Scheduler
from fluxstore.snapshot import SnapshotState

logger = logging.getLogger("fluxstore.store")

CustomHandler = Callable[["Store", Any, Any], Any]


@dataclass(frozen=True)
class StoreConfig:
    """Construction options.

    definition wins over definition_path/custom_definition. custom_handler
    maps entity name -> action type -> handler(store, payload, status).
    """

    definition: Mapping[str, Any] | None = None
    definition_path: str | None = None
    custom_definition: Mapping[str, Any] | None = None
    custom_handler: Mapping[str, Mapping[str, CustomHandler]] = field(default_factory=dict)

    @classmethod
    def coerce(cls, config: StoreConfig | Mapping[str, Any] | None) -> StoreConfig:
        if config is None:
            return cls()
        if isinstance(config, StoreConfig):
            return config
        unknown = set(config) - {"definition", "definition_path", "custom_definition", "custom_handler"}
        if unknown:
            raise TypeError(f"Unknown store options: {', '.join(sorted(unknown))}")
        return cls(**{key: value for key, value in config.items() if value is not None})


class OverrideHandler(Protocol):
    def handle(self, action: Action) -> Any: ...


@dataclass(frozen=True)
class NormalRouting:
    """Route each entity in action.data to its custom or generated operation."""


@dataclass(frozen=True)
class OverrideRouting:
    """Hand the whole action to one handler; no per-entity routing."""

    handler: OverrideHandler | Callable[[Store, Action], Any]

    def handle(self, store: Store, action: Action) -> Any:
        """Objects get handle(action); plain callables get (store, action)."""
        handle = getattr(self.handler, "handle", None)
        if handle is not None:
            return handle(action)
        return self.handler(store, action)


Routing = Union[NormalRouting, OverrideRouting]

_NORMAL = NormalRouting()


class Store:
    """Entity store with generated per-entity operations."""

    def __init__(
        self,
        config: StoreConfig | Mapping[str, Any] | None = None,
        *,
        dispatcher: Dispatcher | None = None,
        scheduler: Scheduler | None = None,
        definitions: DefinitionRegistry | None = None,
    ) -> None:
        self.config = StoreConfig.coerce(config)
        self._definitions = definitions if definitions is not None else default_definitions
        self.definition = self._build_definition()
        self.custom_handler: dict[str, dict[str, CustomHandler]] = {
            entity: dict(handlers) for entity, handlers in self.config.custom_handler.items()
        }
        self._routing: Routing = _NORMAL
        self._state = SnapshotState()
        self._channel = EventChannel()
        self._dispatcher = dispatcher if dispatcher is not None else app_dispatcher
        self._queue = NotificationQueue(self._deliver, scheduler, fallback=self._dispatcher.after_dispatch)
        self._operations, self._identifiers = build_operations(
            self.definition,
            self._state,
            self._channel,
            self._queue,
            reserved=dir(type(self)),
        )
        self._routes = build_routes(self._operations)
        self.dispatch_token: str | None = self._dispatcher.register(self._handle_action)

    def _build_definition(self) -> dict[str, Any]:
        if self.config.definition is not None:
            return dict(self.config.definition)
        return self._definitions.get_entity_informations(
            self.config.definition_path,
            self.config.custom_definition,
        )

    # --- Generated operations ---

    def __getattr__(self, name: str) -> Any:
        identifiers = self.__dict__.get("_identifiers")
        if identifiers is not None and name in identifiers:
            return identifiers[name]
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __dir__(self) -> list[str]:
        return sorted(set(super().__dir__()) | set(self._identifiers))

    @property
    def entity_names(self) -> tuple[str, ...]:
        return tuple(self._operations)

    def operations(self, entity: str) -> EntityOperations:
        """The operation bundle generated for entity."""
        try:
            return self._operations[entity]
        except KeyError:
            raise KeyError(f"{entity!r} is not an entity of this store") from None

    def invoke(self, entity: str, kind: str, *args: Any) -> Any:
        """Call a generated operation by entity name and kind ("get", "update_error", ...)."""
        return self.operations(entity)[kind](*args)

    def get_status(self, entity: str) -> Any:
        """Status recorded by the last data update of entity, or None."""
        if self._state.status.has(entity):
            return self._state.status[entity]
        return None

    getStatus = get_status

    # --- Listeners ---

    def add_listener(self, event: str, callback: Listener) -> Callable[[], None]:
        """Subscribe to any event name. Returns a function that unsubscribes."""
        return self._channel.add_listener(event, callback)

    def remove_listener(self, event: str, callback: Listener) -> None:
        self._channel.remove_listener(event, callback)

    addListener = add_listener
    removeListener = remove_listener

    def listener_count(self, event: str) -> int:
        return self._channel.listener_count(event)

    # --- Override hooks ---

    @property
    def global_custom_handler(self) -> OverrideHandler | Callable[[Store, Action], Any] | None:
        if isinstance(self._routing, OverrideRouting):
            return self._routing.handler
        return None

    @global_custom_handler.setter
    def global_custom_handler(self, handler: OverrideHandler | Callable[[Store, Action], Any] | None) -> None:
        self._routing = _NORMAL if handler is None else OverrideRouting(handler)

    # --- Batching ---

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Group direct operation calls; listeners fire once the outermost batch exits.

        Usage:
            with store.batch():
                store.updateUser({"id": 1}, "success")
                store.updateErrorUser({})
        """
        self._queue.begin()
        try:
            yield
        finally:
            self._queue.end()

    def flush(self) -> None:
        """Deliver pending notifications now, without waiting for the scheduler."""
        self._queue.flush()

    @property
    def pending_notifications(self) -> list[Notification]:
        return self._queue.pending

    def _deliver(self, notifications: list[Notification]) -> None:
        logger.debug("Delivering %d notifications", len(notifications))
        for event, payload in notifications:
            self._channel.emit(event, payload)

    # --- Dispatch ---

    def _handle_action(self, action: Action | Mapping[str, Any]) -> None:
        """Apply one dispatched action, then schedule its notifications."""
        action = Action.coerce(action)
        # Inside a caller's Store.batch() the earlier entries belong to that batch.
        mark = len(self._queue) if self._queue.batching else 0
        self._queue.truncate(mark)
        self._queue.begin()
        try:
            routing = self._routing
            if isinstance(routing, OverrideRouting):
                routing.handle(self, action)
                return
            for entity, payload in action.data.items():
                if entity not in self._operations:
                    logger.debug("Skipping %r: not an entity of this store", entity)
                    continue
                try:
                    self._apply(entity, action.type, payload, action.status.get(entity))
                except ConversionError:
                    logger.warning("Could not convert %r payload for %r", action.type, entity, exc_info=True)
        except BaseException:
            self._queue.truncate(mark)
            raise
        finally:
            self._queue.end()

    def _apply(self, entity: str, action_type: str, payload: Any, status: Any) -> None:
        handler = self.custom_handler.get(entity, {}).get(action_type)
        if handler is not None:
            handler(self, payload, status)
            return
        operation = self._routes.get(route_identifier(action_type, entity))
        if operation is None:
            raise RoutingError(entity, action_type)
        operation(payload, status)

    # --- Lifecycle ---

    def dispose(self) -> None:
        """Unregister from the dispatcher and drop every listener."""
        if self.dispatch_token is not None:
            self._dispatcher.unregister(self.dispatch_token)
            self.dispatch_token = None
        self._channel.remove_all_listeners()
        self._queue.clear()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({list(self._operations)!r})"
