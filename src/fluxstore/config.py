"""Per-store flush configuration."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from fluxstore.exceptions import ConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class StoreConfig:
    """How and when a store's pending draft gets flushed.

    Parameters
    ----------
    async_flush : bool
        Defer the flush until the manager's scheduler calls back, coalescing
        every change applied in the meantime into one notification.
    flush_interval_ms : float
        Minimum spacing between two deferred flushes of the same store.
    frame_synced : bool
        Defer the flush to the next frame tick. Meant for stores fed by
        high-frequency sources.
    mesh_key : str or None
        Stores sharing a mesh key are flushed together in one pass.
    """

    async_flush: bool = False
    flush_interval_ms: float = 10
    frame_synced: bool = False
    mesh_key: str | None = None

    def __post_init__(self) -> None:
        if self.flush_interval_ms < 0:
            raise ConfigError(f"flush_interval_ms must be >= 0, got {self.flush_interval_ms}")
        if self.async_flush and self.frame_synced:
            raise ConfigError("async_flush and frame_synced are mutually exclusive")

    def merged(self, **changes: Any) -> StoreConfig:
        """Return a copy with ``changes`` applied."""
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_env(cls, **overrides: Any) -> StoreConfig:
        """Create configuration from ``FLUXSTORE_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        if "async_flush" not in overrides:
            config_kwargs["async_flush"] = _env_bool(env.get("FLUXSTORE_ASYNC_FLUSH"), False)
        if "frame_synced" not in overrides:
            config_kwargs["frame_synced"] = _env_bool(env.get("FLUXSTORE_FRAME_SYNCED"), False)

        interval_env = env.get("FLUXSTORE_FLUSH_INTERVAL_MS")
        if interval_env is not None and "flush_interval_ms" not in overrides:
            try:
                config_kwargs["flush_interval_ms"] = float(interval_env)
            except ValueError as exc:
                raise ConfigError(f"FLUXSTORE_FLUSH_INTERVAL_MS is not a number: {interval_env!r}") from exc

        mesh_env = env.get("FLUXSTORE_MESH_KEY")
        if mesh_env and "mesh_key" not in overrides:
            config_kwargs["mesh_key"] = mesh_env

        config_kwargs.update(overrides)
        return cls(**config_kwargs)


DEFAULT_CONFIG = StoreConfig()
