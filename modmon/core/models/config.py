"""
Configuration models — layers and the merged effective configuration.

A layer is a flat ``key -> str`` mapping with a report of how it was
loaded. ``EffectiveConfig`` is the merge of every layer for one
component, plus which layer supplied each key.
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

LayerTier = Literal[
    "defaults",
    "component_defaults",
    "machine_overrides",
    "environment_overrides",
]
LayerStatus = Literal["builtin", "loaded", "missing", "malformed", "unreadable"]

_TRUE_VALUES = frozenset({"true", "1", "yes", "on"})
_FALSE_VALUES = frozenset({"false", "0", "no", "off"})


class ConfigLayer(BaseModel):
    """One precedence layer, as loaded from a single source."""

    name: str                       # e.g. "system_default", "machine"
    tier: LayerTier
    path: str | None = None         # None for built-in and environment layers
    status: LayerStatus = "loaded"
    values: dict[str, str] = Field(default_factory=dict)
    error: str | None = None

    @property
    def applied(self) -> bool:
        """Whether this layer contributed to the merge."""
        return self.status in ("builtin", "loaded")


class EffectiveConfig(BaseModel):
    """The merged configuration seen by one component run.

    Rebuilt on every resolve; never cached across dispatches.
    """

    component: str | None = None
    values: dict[str, str] = Field(default_factory=dict)
    sources: dict[str, str] = Field(default_factory=dict)   # key -> layer name
    layers: list[ConfigLayer] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    def __getitem__(self, key: str) -> str:
        return self.values[key]

    def __contains__(self, key: object) -> bool:
        return key in self.values

    def get(self, key: str, default: str | None = None) -> str | None:
        return self.values.get(key, default)

    def get_int(self, key: str, default: int) -> int:
        """Integer value for ``key``; ``default`` if missing or not a number."""
        raw = self.values.get(key)
        if raw is None or raw.strip() == "":
            return default
        try:
            return int(raw.strip())
        except ValueError:
            logger.warning(
                "Config %s=%r is not an integer, using default %d", key, raw, default
            )
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        raw = self.values.get(key)
        if raw is None or raw.strip() == "":
            return default
        lowered = raw.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        logger.warning("Config %s=%r is not a boolean, using %s", key, raw, default)
        return default

    def get_list(self, key: str) -> list[str]:
        """Whitespace-separated list value (empty list when unset)."""
        return (self.values.get(key) or "").split()

    def source_of(self, key: str) -> str | None:
        return self.sources.get(key)

    def layer(self, name: str) -> ConfigLayer | None:
        for layer in self.layers:
            if layer.name == name:
                return layer
        return None
