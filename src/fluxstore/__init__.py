"""fluxstore: schema-driven entity stores for unidirectional data flow."""

from importlib.metadata import version as _version

__version__ = _version("fluxstore")

from fluxstore.action import Action
from fluxstore.channel import EventChannel, NO_PAYLOAD
from fluxstore.definition import DefinitionRegistry, definitions
from fluxstore.dispatcher import Dispatcher, app_dispatcher
from fluxstore.errors import (
    ConversionError,
    DefinitionError,
    DispatchError,
    FluxStoreError,
    RoutingError,
    SchemaCollisionError,
    SchemaError,
)
from fluxstore.operations import EntityOperations
from fluxstore.scheduler import set_scheduler
from fluxstore.snapshot import FrozenDict, FrozenList, Snapshot, freeze, thaw
from fluxstore.store import Store, StoreConfig
# textual NOT auto-imported — opt-in only

__all__ = [
    "Action",
    "EventChannel",
    "NO_PAYLOAD",
    "DefinitionRegistry",
    "definitions",
    "Dispatcher",
    "app_dispatcher",
    "FluxStoreError",
    "SchemaError",
    "SchemaCollisionError",
    "RoutingError",
    "ConversionError",
    "DispatchError",
    "DefinitionError",
    "EntityOperations",
    "set_scheduler",
    "Snapshot",
    "FrozenDict",
    "FrozenList",
    "freeze",
    "thaw",
    "Store",
    "StoreConfig",
]
