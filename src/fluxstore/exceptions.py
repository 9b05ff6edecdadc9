"""Exception hierarchy for fluxstore."""

from __future__ import annotations


class FluxStoreError(Exception):
    """Base exception for all fluxstore errors."""


class ConfigError(FluxStoreError):
    """Invalid store configuration."""


class SchemaError(FluxStoreError, ValueError):
    """A value could not be sanitized against its schema descriptor."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class ValueRangeError(SchemaError):
    """Numeric value or string length outside the descriptor's bounds."""


class InvalidValueError(SchemaError):
    """Value cannot be coerced to the descriptor's type.

    Raised for unparseable dates, non-boolean values on boolean fields and
    non-callable values on callback fields.
    """
