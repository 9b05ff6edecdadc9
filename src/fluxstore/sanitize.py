"""Schema engine — sanitize and validate values against a schema tree.

sanitize() coerces a value into the shape a schema describes, filling in
defaults and raising SchemaError on data it cannot coerce. validate() walks
the same tree and returns human-readable errors instead of raising.
"""

from __future__ import annotations

import copy
import dataclasses
import functools
import logging
import math
import re
from collections.abc import Mapping, Sequence
from datetime import UTC, date, datetime
from typing import Any

from fluxstore.exceptions import InvalidValueError, SchemaError, ValueRangeError
from fluxstore.fields import (
    Array,
    Bool,
    Callback,
    Custom,
    DateTime,
    Field,
    Float,
    Int,
    Object,
    Schema,
    String,
)

logger = logging.getLogger("fluxstore.sanitize")

WIRE_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# Returned by numeric sanitizers for input that holds no number at all.
NOT_A_NUMBER = ""

_MISSING = object()
_LETTERS = re.compile(r"[a-zA-Z]+")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_LEADING_FLOAT = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def _parse_int(value: Any) -> int | None:
    """Leading-integer parse: "12px" -> 12, "1.9" -> 1, "abc" -> None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else None


def _parse_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if isinstance(value, float) and math.isnan(value) else float(value)
    match = _LEADING_FLOAT.match(str(value))
    return float(match.group(1)) if match else None


def _check_bounds(value: float, descriptor: Int | Float, kind: str) -> None:
    if descriptor.min is not None and value < descriptor.min:
        raise ValueRangeError(
            f"Provided value cannot be sanitized, value is below minimum {kind} allowed",
            field=descriptor.label,
        )
    if descriptor.max is not None and value > descriptor.max:
        raise ValueRangeError(
            f"Provided value cannot be sanitized, value is greater than maximum {kind} allowed",
            field=descriptor.label,
        )


def sanitize_integer(value: Any, descriptor: Int) -> int | str:
    """Coerce to int, or the empty-string sentinel when nothing numeric is left."""
    if isinstance(value, str):
        value = _LETTERS.sub("", value)
        if not value:
            return NOT_A_NUMBER

    parsed = _parse_int(value)
    if parsed is None:
        return NOT_A_NUMBER

    _check_bounds(parsed, descriptor, "integer")
    return parsed


def sanitize_float(value: Any, descriptor: Float) -> float | str:
    parsed = _parse_float(value)
    if parsed is None:
        return NOT_A_NUMBER

    _check_bounds(parsed, descriptor, "float")
    return parsed


def sanitize_string(value: Any, descriptor: String) -> str:
    """Coerce to str. Overlong values are truncated, short ones rejected."""
    value = str(value)
    if descriptor.min_length is not None and len(value) < descriptor.min_length:
        raise ValueRangeError(
            "Provided value cannot be sanitized, string length is below minimum allowed",
            field=descriptor.label,
        )

    if descriptor.max_length is not None and len(value) > descriptor.max_length:
        logger.warning(
            "Value was truncated during sanitization (%d > %d characters)",
            len(value), descriptor.max_length,
        )
        value = value[: descriptor.max_length]

    return value


def sanitize_boolean(value: Any, descriptor: Bool) -> bool:
    if value is True or value is False:
        return value

    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized == "false":
            return False
        if normalized == "true":
            return True

    parsed = _parse_int(value)
    if parsed == 0:
        return False
    if parsed == 1:
        return True

    raise InvalidValueError(
        "Provided value cannot be sanitized, is not a valid boolean", field=descriptor.label
    )


def _normalize_datetime(value: datetime, utc: bool) -> datetime:
    if utc:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
    if value.tzinfo is not None:
        return value.astimezone()
    return value


def _parse_datetime(value: Any, descriptor: DateTime) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        # Epoch milliseconds.
        try:
            return datetime.fromtimestamp(value / 1000, UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            return datetime.strptime(value, descriptor.format)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


def sanitize_datetime(value: Any, descriptor: DateTime, wire: bool = False) -> datetime | str:
    """Parse into a datetime, or its UTC wire string when ``wire`` is set."""
    parsed = _parse_datetime(value, descriptor)
    if parsed is None:
        raise InvalidValueError(
            f"Provided value ({value}) cannot be sanitized for field ({descriptor.label}), "
            "is not a valid date",
            field=descriptor.label,
        )

    parsed = _normalize_datetime(parsed, descriptor.utc)
    if wire:
        return parsed.astimezone(UTC).strftime(WIRE_DATETIME_FORMAT)
    return parsed


def sanitize_object(value: Any, descriptor: Object, wire: bool = False) -> Any:
    if descriptor.schema is None or value is None:
        return value
    if not callable(descriptor.schema):
        raise SchemaError(
            "Provided value cannot be sanitized, object schema must be a factory",
            field=descriptor.label,
        )

    if not wire and descriptor.constructor is not None:
        return descriptor.constructor(sanitize(value, descriptor.schema()))

    return sanitize(value, descriptor.schema(), wire)


def sanitize_array(value: Any, descriptor: Array, wire: bool = False) -> list:
    if not isinstance(value, (list, tuple)):
        return []

    member = descriptor.member_descriptor()
    if member is not None:
        return [sanitize_field(member, item, wire) for item in value]

    if descriptor.schema is None:
        return list(value)

    results = []
    for item in value:
        if not wire and descriptor.constructor is not None:
            results.append(descriptor.constructor(sanitize(item, descriptor.schema())))
        else:
            results.append(sanitize(item, descriptor.schema(), wire))
    return results


def sanitize_callback(value: Any, descriptor: Callback) -> Any:
    if not callable(value):
        raise InvalidValueError("Provided callback is not a valid function", field=descriptor.label)
    return value


@functools.singledispatch
def _coerce(descriptor: Field, value: Any, wire: bool) -> Any:
    raise SchemaError(f"No sanitizer for descriptor type {type(descriptor).__name__}")


@_coerce.register
def _(descriptor: Int, value: Any, wire: bool) -> Any:
    return sanitize_integer(value, descriptor)


@_coerce.register
def _(descriptor: Float, value: Any, wire: bool) -> Any:
    return sanitize_float(value, descriptor)


@_coerce.register
def _(descriptor: String, value: Any, wire: bool) -> Any:
    return sanitize_string(value, descriptor)


@_coerce.register
def _(descriptor: Bool, value: Any, wire: bool) -> Any:
    return sanitize_boolean(value, descriptor)


@_coerce.register
def _(descriptor: DateTime, value: Any, wire: bool) -> Any:
    return sanitize_datetime(value, descriptor, wire)


@_coerce.register
def _(descriptor: Object, value: Any, wire: bool) -> Any:
    return sanitize_object(value, descriptor, wire)


@_coerce.register
def _(descriptor: Array, value: Any, wire: bool) -> Any:
    return sanitize_array(value, descriptor, wire)


@_coerce.register
def _(descriptor: Callback, value: Any, wire: bool) -> Any:
    return sanitize_callback(value, descriptor)


@_coerce.register
def _(descriptor: Custom, value: Any, wire: bool) -> Any:
    if descriptor.sanitize is not None:
        return descriptor.sanitize(value, descriptor)
    return value


def sanitize_field(descriptor: Field, value: Any = _MISSING, wire: bool = False) -> Any:
    """Sanitize a single value; a missing value takes the descriptor's initial."""
    if value is _MISSING:
        value = descriptor.make_initial()
    if value is None:
        return None
    return _coerce(descriptor, value, wire)


def _lookup(source: Any, name: str) -> Any:
    if isinstance(source, Mapping):
        return source.get(name, _MISSING)
    if isinstance(source, (str, bytes, int, float, Sequence)):
        return _MISSING
    return getattr(source, name, _MISSING)


def sanitize(value: Any, schema: Schema, wire: bool = False) -> dict[str, Any]:
    """Build a new dict holding every field of ``schema``, sanitized.

    ``wire`` renders datetimes as strings and skips object constructors, for
    payloads that are about to be serialized.
    """
    source = copy.deepcopy(value) if value is not None else {}
    clean: dict[str, Any] = {}
    for name, descriptor in schema.items():
        descriptor = _labelled(descriptor, name)
        clean[name] = sanitize_field(descriptor, _lookup(source, name), wire)
    return clean


def _labelled(descriptor: Field, name: str) -> Field:
    if descriptor.label is not None:
        return descriptor
    return dataclasses.replace(descriptor, label=name)


def _length(value: Any) -> int:
    if value is None:
        return 0
    try:
        return len(value)
    except TypeError:
        return len(str(value))


def _validate_field(name: str, descriptor: Field, value: Any) -> list[str]:
    errors: list[str] = []
    label = descriptor.label or name

    for rule, parameter in descriptor.validation.items():
        if errors:
            break

        if rule == "validate":
            if isinstance(descriptor, Object) and parameter and descriptor.schema is not None:
                sub_errors = validate(value if value is not None else {}, descriptor.schema())
                if sub_errors is not True:
                    errors.extend(sub_errors)
            continue

        if rule == "required":
            if parameter and (value is None or value == ""):
                errors.append(f"{label} is required")
        elif rule == "min_length":
            if _length(value) < parameter:
                errors.append(f"{label} must be at least {parameter} characters")
        elif rule == "max_length":
            if _length(value) > parameter:
                errors.append(f"{label} must be under {parameter} characters")
        elif callable(parameter):
            result = parameter(value)
            if result is not True:
                if isinstance(result, (list, tuple)):
                    errors.extend(str(message) for message in result)
                else:
                    errors.append(str(result))

    return errors


def validate(value: Any, schema: Schema) -> bool | list[str]:
    """Return True, or the list of validation messages for ``value``.

    Rules are read from each descriptor's ``validation`` mapping, in order:
    ``required``, ``min_length``, ``max_length``, ``validate`` (recurse into an
    Object's schema) and any callable predicate returning True or error(s).
    A field stops at its first failing rule; later fields are still checked.
    """
    errors: list[str] = []
    for name, descriptor in schema.items():
        if not descriptor.validation:
            continue
        field_value = _lookup(value, name)
        if field_value is _MISSING:
            field_value = None
        errors.extend(_validate_field(name, descriptor, field_value))

    return errors if errors else True


def sanitize_and_validate(value: Any, schema: Schema) -> dict[str, Any] | list[str]:
    """Sanitize, then validate the result. Returns the clean value or the errors."""
    model = sanitize(value, schema, False)
    result = validate(model, schema)
    if result is True:
        return model
    return result


__all__ = [
    "NOT_A_NUMBER",
    "WIRE_DATETIME_FORMAT",
    "sanitize",
    "sanitize_and_validate",
    "sanitize_array",
    "sanitize_boolean",
    "sanitize_callback",
    "sanitize_datetime",
    "sanitize_field",
    "sanitize_float",
    "sanitize_integer",
    "sanitize_object",
    "sanitize_string",
    "validate",
]
