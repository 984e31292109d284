"""
Built-in remediation handlers.

    registry = register_builtin_handlers(HandlerRegistry())
"""

from __future__ import annotations

from modmon.adapters.registry import HandlerRegistry
from modmon.adapters.remediation.family import FamilyHandler
from modmon.adapters.remediation.plan import CommandPlanHandler
from modmon.adapters.remediation.process import ProcessKillHandler
from modmon.adapters.remediation.snapshot import ConfigSnapshotHandler
from modmon.core.config.catalog_loader import discover_catalog
from modmon.core.engine.router import VariantRouter
from modmon.core.models.catalog import Catalog


def register_builtin_handlers(
    registry: HandlerRegistry,
    catalog: Catalog | None = None,
) -> HandlerRegistry:
    """Register catalog actions, catalog families and the Python handlers.

    Each family is registered twice: its variants under the family, and
    a FamilyHandler under the family name so it can be dispatched.
    """
    catalog = catalog if catalog is not None else discover_catalog()
    router = VariantRouter(registry)

    for action in catalog.actions:
        registry.register_action(
            action.name,
            CommandPlanHandler(action.name, action.steps, action.description, action.enabled_key),
        )

    for family in catalog.families:
        for variant in family.variants:
            registry.register_variant(
                family.name,
                variant.name,
                CommandPlanHandler(variant.name, variant.steps, variant.description),
            )
        registry.register_action(family.name, FamilyHandler(family, router))

    process_kill = ProcessKillHandler()
    registry.register_action(process_kill.name, process_kill)
    snapshot = ConfigSnapshotHandler()
    registry.register_action(snapshot.name, snapshot)

    return registry


__all__ = [
    "CommandPlanHandler",
    "ConfigSnapshotHandler",
    "FamilyHandler",
    "ProcessKillHandler",
    "register_builtin_handlers",
]
