"""Schema descriptors — one dataclass per field type.

A schema tree is a plain mapping of field name to descriptor:

    def todo_schema():
        return {
            "title": String(max_length=80, validation={"required": True}),
            "done": Bool(),
            "due": DateTime(),
            "tags": Array(member_type="string"),
            "children": Array(schema=todo_schema),
        }

Container descriptors (Object, Array) take a zero-argument ``schema``
factory rather than a tree, so schemas can refer to themselves.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Mapping
from typing import Any

Schema = Mapping[str, "Field"]
SchemaFactory = Callable[[], Schema]

DEFAULT_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def _empty_string() -> str:
    return ""


def _zero() -> int:
    return 0


def _zero_float() -> float:
    return 0.0


def _false() -> bool:
    return False


def _empty_list() -> list:
    return []


def _empty_dict() -> dict:
    return {}


@dataclasses.dataclass(kw_only=True)
class Field:
    """Common options shared by every descriptor.

    ``validation`` is an ordered mapping of rule name to parameter; see
    :func:`fluxstore.sanitize.validate` for the recognised rules.
    """

    initial: Callable[[], Any] | None = None
    label: str | None = None
    validation: Mapping[str, Any] = dataclasses.field(default_factory=dict)

    tag = "field"

    def make_initial(self) -> Any:
        return self.initial() if self.initial is not None else None


@dataclasses.dataclass(kw_only=True)
class String(Field):
    initial: Callable[[], Any] | None = _empty_string
    min_length: int | None = None
    max_length: int | None = None

    tag = "string"


@dataclasses.dataclass(kw_only=True)
class Int(Field):
    initial: Callable[[], Any] | None = _zero
    min: float | None = None
    max: float | None = None

    tag = "int"


@dataclasses.dataclass(kw_only=True)
class Float(Field):
    initial: Callable[[], Any] | None = _zero_float
    min: float | None = None
    max: float | None = None

    tag = "float"


@dataclasses.dataclass(kw_only=True)
class Double(Float):
    tag = "double"


@dataclasses.dataclass(kw_only=True)
class Bool(Field):
    initial: Callable[[], Any] | None = _false

    tag = "bool"


@dataclasses.dataclass(kw_only=True)
class Object(Field):
    """Nested structure. ``schema=None`` passes the value through untouched."""

    initial: Callable[[], Any] | None = _empty_dict
    schema: SchemaFactory | None = None
    constructor: Callable[[dict], Any] | None = None

    tag = "object"


@dataclasses.dataclass(kw_only=True)
class Array(Field):
    """Sequence of values.

    Members are described either by ``member`` (a descriptor), by
    ``member_type`` (a type tag) plus ``member_type_config`` (its options),
    or by a ``schema`` factory for structured members.
    """

    initial: Callable[[], Any] | None = _empty_list
    schema: SchemaFactory | None = None
    constructor: Callable[[dict], Any] | None = None
    member: Field | None = None
    member_type: str | None = None
    member_type_config: Mapping[str, Any] = dataclasses.field(default_factory=dict)

    tag = "array"

    def member_descriptor(self) -> Field | None:
        if self.member is not None:
            return self.member
        if self.member_type is not None:
            return field_for(self.member_type, **self.member_type_config)
        return None


@dataclasses.dataclass(kw_only=True)
class DateTime(Field):
    """Date/time value.

    ``format`` uses :meth:`datetime.strptime` syntax. With ``utc`` (the
    default) naive values are read as UTC and aware values converted to UTC.
    """

    format: str = DEFAULT_DATETIME_FORMAT
    utc: bool = True

    tag = "datetime"


@dataclasses.dataclass(kw_only=True)
class Callback(Field):
    tag = "callback"


@dataclasses.dataclass
class Custom(Field):
    """Application-defined type, sanitized by ``sanitize(value, descriptor)``."""

    type_name: str = "custom"
    sanitize: Callable[[Any, Custom], Any] | None = None

    tag = "custom"


FIELD_TYPES: dict[str, type[Field]] = {
    "string": String,
    "char": String,
    "varchar": String,
    "int": Int,
    "integer": Int,
    "float": Float,
    "double": Double,
    "bool": Bool,
    "boolean": Bool,
    "object": Object,
    "obj": Object,
    "array": Array,
    "collection": Array,
    "datetime": DateTime,
    "date": DateTime,
    "timestamp": DateTime,
    "callback": Callback,
}


def field_for(tag: str, **options: Any) -> Field:
    """Build a descriptor from a type tag.

    Unknown tags produce a :class:`Custom` descriptor named after the tag.
    """
    cls = FIELD_TYPES.get(tag)
    if cls is None:
        return Custom(type_name=tag, **options)
    return cls(**options)
