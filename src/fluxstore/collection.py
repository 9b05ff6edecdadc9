"""Keyed collections — upsert/get/remove entities in plain lists by identity key.

Each element of a keyed collection carries an identity key, stored under
IDENTITY_KEY on dict items or as an attribute on other objects. Callers that
already have a natural key can pass ``key_fn`` instead; items are then looked
up through it and never stamped.

All helpers mutate the list they are given, in place.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable, Hashable, Mapping, MutableMapping
from typing import Any

logger = logging.getLogger("fluxstore.collection")

IDENTITY_KEY = "__key__"

_UNSET = object()

KeyFn = Callable[[Any], Hashable]


def _slot_names(value: Any) -> list[str]:
    names = []
    for cls in type(value).__mro__:
        slots = cls.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        names.extend(name for name in slots if name not in ("__dict__", "__weakref__"))
    return names


def _is_structured(value: Any) -> bool:
    # Tuples, namedtuples included, are immutable and cannot be merged into.
    if isinstance(value, Mapping):
        return True
    if isinstance(value, (type, tuple)) or callable(value):
        return False
    return hasattr(value, "__dict__") or bool(_slot_names(value))


def _attributes(value: Any) -> dict[str, Any]:
    fields = {name: getattr(value, name) for name in _slot_names(value) if hasattr(value, name)}
    if hasattr(value, "__dict__"):
        fields.update(vars(value))
    return fields


def _can_stamp(item: Any) -> bool:
    return isinstance(item, MutableMapping) or hasattr(item, "__dict__") or IDENTITY_KEY in _slot_names(item)


def read_key(item: Any) -> Any:
    """Return the identity key stamped on ``item``, or None."""
    if isinstance(item, Mapping):
        return item.get(IDENTITY_KEY)
    return getattr(item, IDENTITY_KEY, None)


def _stamp(item: Any, key: Any) -> None:
    if isinstance(item, MutableMapping):
        item[IDENTITY_KEY] = key
    else:
        setattr(item, IDENTITY_KEY, key)


def _index_of(collection: list, key: Any, key_fn: KeyFn | None) -> int | None:
    extract = key_fn or read_key
    for index, item in enumerate(collection):
        if extract(item) == key:
            return index
    return None


def deep_merge(target: Any, source: Any) -> Any:
    """Recursively merge ``source`` into ``target`` and return ``target``.

    Mappings and attribute objects merge field by field, lists merge index by
    index, anything else in ``source`` replaces what ``target`` holds.
    """
    if isinstance(target, MutableMapping) and isinstance(source, Mapping):
        for key, value in source.items():
            if key in target:
                target[key] = deep_merge(target[key], value)
            else:
                target[key] = value
        return target

    if isinstance(target, list) and isinstance(source, list):
        for index, value in enumerate(source):
            if index < len(target):
                target[index] = deep_merge(target[index], value)
            else:
                target.append(value)
        return target

    if _is_structured(target) and not isinstance(target, Mapping) and _is_structured(source):
        items = source.items() if isinstance(source, Mapping) else _attributes(source).items()
        for key, value in items:
            current = getattr(target, key, _UNSET)
            setattr(target, key, value if current is _UNSET else deep_merge(current, value))
        return target

    return source


def upsert_item(
    collection: Any,
    key: Any,
    item: Any,
    overwrite: bool = False,
    *,
    key_fn: KeyFn | None = None,
) -> bool:
    """Insert ``item`` under ``key``, or update the element already there.

    An existing element is deep-merged with ``item`` unless ``overwrite`` is
    set, in which case ``item`` replaces it. Returns False, with a warning,
    when ``item`` is not a structured value or carries a different key.
    Slotted objects without an IDENTITY_KEY slot need ``key_fn``; tuples,
    namedtuples included, are rejected.
    """
    if not isinstance(collection, list):
        logger.warning("Non list passed in as collection: %r", type(collection).__name__)
        collection = []

    if not _is_structured(item):
        logger.warning("Upserted item must be a mapping or object, %s given", type(item).__name__)
        return False

    existing_key = key_fn(item) if key_fn is not None else read_key(item)
    if existing_key is not None and existing_key != key:
        logger.warning("Upserted item does not match the key passed in: %r != %r", existing_key, key)
        return False

    if key_fn is None and not _can_stamp(item):
        logger.warning("%s has no room for an identity key, pass key_fn", type(item).__name__)
        return False

    index = _index_of(collection, key, key_fn)
    if index is None:
        if key_fn is None:
            _stamp(item, key)
        collection.append(item)
        return True

    collection[index] = item if overwrite else deep_merge(collection[index], item)
    if key_fn is None:
        _stamp(collection[index], key)
    return True


def get_item(collection: Any, key: Any, *, key_fn: KeyFn | None = None) -> Any:
    """First element whose key equals ``key``, or None."""
    if not isinstance(collection, list):
        return None
    index = _index_of(collection, key, key_fn)
    return collection[index] if index is not None else None


def remove_item(collection: Any, key: Any, *, key_fn: KeyFn | None = None) -> list | bool:
    """Remove the first element matching ``key``; return it in a list, or False."""
    if not isinstance(collection, list):
        return False
    index = _index_of(collection, key, key_fn)
    if index is None:
        return False
    removed = collection[index : index + 1]
    del collection[index]
    return removed


def remove_items(collection: Any, keys: Any, *, key_fn: KeyFn | None = None) -> None:
    for key in keys:
        remove_item(collection, key, key_fn=key_fn)


def _field(item: Any, key: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(key)
    return getattr(item, key, None)


def sort_by(key: str, direction: str = "desc") -> Callable[[Any], Any]:
    """Sort key for ``list.sort`` ordering items by the ``key`` field.

    Items with an empty value go last when sorting descending and first
    when sorting ascending.
    """
    descending = direction.lower() == "desc"

    def compare(a: Any, b: Any) -> int:
        left, right = _field(a, key), _field(b, key)
        if not left and not right:
            return 0
        if not left:
            order = -1
        elif not right:
            order = 1
        elif left < right:
            order = -1
        elif left > right:
            order = 1
        else:
            return 0
        return -order if descending else order

    return functools.cmp_to_key(compare)


def money(value: float) -> str:
    """Format a number with exactly two decimal places."""
    return f"{value:.2f}"
