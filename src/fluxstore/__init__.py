"""fluxstore: schema-validated state stores with batched change notification."""

from importlib.metadata import version as _version

__version__ = _version("fluxstore")

from fluxstore.exceptions import (
    ConfigError,
    FluxStoreError,
    InvalidValueError,
    SchemaError,
    ValueRangeError,
)
from fluxstore.config import StoreConfig
from fluxstore.fields import (
    Array,
    Bool,
    Callback,
    Custom,
    DateTime,
    Double,
    Field,
    Float,
    Int,
    Object,
    String,
    field_for,
)
from fluxstore.sanitize import sanitize, sanitize_and_validate, validate
from fluxstore.collection import IDENTITY_KEY, get_item, remove_item, remove_items, upsert_item
from fluxstore.dispatch import ActionBus
from fluxstore.manager import StoreManager
from fluxstore.store import ACTION_SEED, SeedHandler, StateHistory, Store, clone_state
from fluxstore.action import action, transaction
from fluxstore.reaction import Selection, select

__all__ = [
    "ACTION_SEED",
    "IDENTITY_KEY",
    "ActionBus",
    "Array",
    "Bool",
    "Callback",
    "ConfigError",
    "Custom",
    "DateTime",
    "Double",
    "Field",
    "Float",
    "FluxStoreError",
    "Int",
    "InvalidValueError",
    "Object",
    "SchemaError",
    "SeedHandler",
    "Selection",
    "StateHistory",
    "Store",
    "StoreConfig",
    "StoreManager",
    "String",
    "ValueRangeError",
    "action",
    "clone_state",
    "field_for",
    "get_item",
    "remove_item",
    "remove_items",
    "sanitize",
    "sanitize_and_validate",
    "select",
    "transaction",
    "upsert_item",
    "validate",
]
