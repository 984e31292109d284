"""
Handler registry — validated names mapped to remediation handlers.

Two kinds of entries:
    - actions:  ``action_name -> handler``, dispatched directly.
    - families: ``family -> {variant -> handler}``, chosen by the
      VariantRouter from configuration or detection.

Populated once at startup (see ``register_builtin_handlers``). Names
are validated on registration, so lookups never resolve a name to a
path or anything outside this table.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from modmon.core.engine.identifiers import is_valid_identifier, validate_identifier

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]


class HandlerRegistry:
    """Central registry of remediation handlers."""

    def __init__(self) -> None:
        self._actions: dict[str, Handler] = {}
        self._families: dict[str, dict[str, Handler]] = {}

    # ── Actions ─────────────────────────────────────────────────

    def register_action(self, name: str, handler: Handler) -> None:
        validate_identifier(name, "action")
        if name in self._actions:
            logger.warning("Overwriting existing handler: %s", name)
        self._actions[name] = handler
        logger.debug("Registered action handler: %s", name)

    def unregister_action(self, name: str) -> None:
        self._actions.pop(name, None)

    def get_action(self, name: str) -> Handler | None:
        if not is_valid_identifier(name):
            return None
        return self._actions.get(name)

    def list_actions(self) -> list[str]:
        return sorted(self._actions)

    # ── Families ────────────────────────────────────────────────

    def register_variant(self, family: str, variant: str, handler: Handler) -> None:
        validate_identifier(family, "family")
        validate_identifier(variant, "variant")
        variants = self._families.setdefault(family, {})
        if variant in variants:
            logger.warning("Overwriting existing %s variant: %s", family, variant)
        variants[variant] = handler
        logger.debug("Registered %s variant: %s", family, variant)

    def get_variant(self, family: str, variant: str) -> Handler | None:
        return self._families.get(family, {}).get(variant)

    def has_family(self, family: str) -> bool:
        return family in self._families

    def variants(self, family: str) -> list[str]:
        return sorted(self._families.get(family, {}))

    def list_families(self) -> list[str]:
        return sorted(self._families)

    def describe(self) -> dict[str, Any]:
        """Registry contents for display."""
        return {
            "actions": {
                name: getattr(handler, "description", "") for name, handler in sorted(self._actions.items())
            },
            "families": {family: self.variants(family) for family in self.list_families()},
        }

    def __len__(self) -> int:
        return len(self._actions) + sum(len(v) for v in self._families.values())
