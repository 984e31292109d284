"""
Health checker — aggregate engine health from its components.

Reports on configuration layers, the grace store and the handler
registry. Used by the CLI ``health`` command.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from modmon.adapters.registry import HandlerRegistry
from modmon.core.models.config import EffectiveConfig
from modmon.core.persistence.grace_store import FileGraceStore, GraceStore

logger = logging.getLogger(__name__)


@dataclass
class ComponentHealth:
    """Health of a single component."""

    name: str
    status: str = "unknown"  # healthy, degraded, unhealthy, unknown
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "message": self.message,
            "details": self.details,
        }


@dataclass
class SystemHealth:
    """Aggregate health of the engine."""

    status: str = "healthy"
    timestamp: str = ""
    components: list[ComponentHealth] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.timestamp:
            self.timestamp = datetime.now(UTC).isoformat()

    def add(self, component: ComponentHealth) -> None:
        self.components.append(component)
        self._recalculate()

    def _recalculate(self) -> None:
        statuses = [c.status for c in self.components]
        if any(s == "unhealthy" for s in statuses):
            self.status = "unhealthy"
        elif any(s == "degraded" for s in statuses):
            self.status = "degraded"
        elif all(s == "healthy" for s in statuses):
            self.status = "healthy"
        else:
            self.status = "unknown"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "components": [c.to_dict() for c in self.components],
        }


def check_config_layers(config: EffectiveConfig) -> ComponentHealth:
    """Degraded when any layer file was malformed or unreadable."""
    layers = {
        layer.name: {"status": layer.status, "path": layer.path, "keys": len(layer.values)}
        for layer in config.layers
    }
    broken = [layer.name for layer in config.layers if layer.status in ("malformed", "unreadable")]
    loaded = sum(1 for layer in config.layers if layer.status == "loaded")

    if broken:
        return ComponentHealth(
            name="config",
            status="degraded",
            message=f"{len(broken)} layer(s) skipped: {', '.join(broken)}",
            details={"layers": layers, "warnings": list(config.warnings)},
        )
    return ComponentHealth(
        name="config",
        status="healthy",
        message=f"{loaded} layer(s) loaded, {len(config.values)} keys",
        details={"layers": layers},
    )


def check_grace_store(store: GraceStore) -> ComponentHealth:
    """Corrupt records degrade; an unwritable store directory is unhealthy."""
    details: dict[str, Any] = {"backend": store.__class__.__name__}

    if isinstance(store, FileGraceStore):
        directory = store.directory
        details["directory"] = str(directory)
        probe = directory if directory.exists() else directory.parent
        if not os.access(probe, os.W_OK):
            return ComponentHealth(
                name="grace_store",
                status="unhealthy",
                message=f"Grace directory not writable: {probe}",
                details=details,
            )

    records = store.list_records()
    corrupt = store.corrupt_names()
    details["records"] = len(records)
    details["corrupt"] = corrupt

    if corrupt:
        return ComponentHealth(
            name="grace_store",
            status="degraded",
            message=f"{len(corrupt)} corrupt record(s): {', '.join(corrupt)}",
            details=details,
        )
    return ComponentHealth(
        name="grace_store",
        status="healthy",
        message=f"{len(records)} active record(s)",
        details=details,
    )


def check_handlers(registry: HandlerRegistry) -> ComponentHealth:
    described = registry.describe()
    if len(registry) == 0:
        return ComponentHealth(
            name="handlers",
            status="unhealthy",
            message="No remediation handlers registered",
            details=described,
        )
    return ComponentHealth(
        name="handlers",
        status="healthy",
        message=(
            f"{len(described['actions'])} actions, "
            f"{len(described['families'])} variant families"
        ),
        details=described,
    )


def check_system_health(
    config: EffectiveConfig | None = None,
    store: GraceStore | None = None,
    registry: HandlerRegistry | None = None,
) -> SystemHealth:
    """Run all health checks and return aggregate status."""
    health = SystemHealth()

    if config is not None:
        health.add(check_config_layers(config))
    if store is not None:
        health.add(check_grace_store(store))
    if registry is not None:
        health.add(check_handlers(registry))

    return health
