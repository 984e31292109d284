"""
Enablement policy — global and per-action autofix switches.

Pure functions of an ``EffectiveConfig``; nothing is cached or stored.

    AUTOFIX           global switch. Unset or empty means enabled.
    DISABLE_AUTOFIX   space-separated action names to hold back.
    USE_MODULES       space-separated components to run (empty: all).
    IGNORE_MODULES    space-separated components to skip.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Literal

from modmon.core.models.config import EffectiveConfig

logger = logging.getLogger(__name__)

AUTOFIX_KEY = "AUTOFIX"
DISABLE_KEY = "DISABLE_AUTOFIX"
USE_MODULES_KEY = "USE_MODULES"
IGNORE_MODULES_KEY = "IGNORE_MODULES"
ALL_MODULES = "ALL"

MACHINE_CONFIG_HINT = "config/SYSTEM.conf"

_HANDLER_SUFFIXES = (".sh", ".py")
_ENABLED_VALUES = frozenset({"true", "1", "yes", "on"})
_DISABLED_VALUES = frozenset({"false", "0", "no", "off"})


def normalize_action_name(name: str) -> str:
    """Drop one trailing handler extension: ``disk-cleanup.sh`` → ``disk-cleanup``."""
    for suffix in _HANDLER_SUFFIXES:
        if name.endswith(suffix) and len(name) > len(suffix):
            return name[: -len(suffix)]
    return name


@dataclass
class EnablementState:
    """Derived view of the enablement keys."""

    global_enabled: bool
    disabled_actions: frozenset[str] = field(default_factory=frozenset)
    global_value: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "global_enabled": self.global_enabled,
            "global_value": self.global_value,
            "disabled_actions": sorted(self.disabled_actions),
        }


@dataclass
class EnablementDecision:
    """Whether an action may run, and if not, which key holds it back."""

    enabled: bool
    scope: Literal["global", "selective"] | None = None
    config_key: str | None = None
    reason: str = ""


class EnablementPolicy:
    """Evaluates the enablement keys of one configuration snapshot."""

    def __init__(self, config: EffectiveConfig):
        self._config = config

    def state(self) -> EnablementState:
        raw = self._config.get(AUTOFIX_KEY)
        return EnablementState(
            global_enabled=self._global_enabled(raw),
            disabled_actions=frozenset(
                normalize_action_name(a) for a in self._config.get_list(DISABLE_KEY)
            ),
            global_value=raw,
        )

    def is_enabled(self, action_name: str | None = None) -> bool:
        return self.evaluate(action_name).enabled

    def evaluate(self, action_name: str | None = None) -> EnablementDecision:
        state = self.state()

        if not state.global_enabled:
            return EnablementDecision(
                enabled=False,
                scope="global",
                config_key=AUTOFIX_KEY,
                reason=(
                    f"Autofix globally disabled ({AUTOFIX_KEY}={state.global_value!r}). "
                    f"To enable: set {AUTOFIX_KEY}=true in {MACHINE_CONFIG_HINT}"
                ),
            )

        if action_name is not None:
            name = normalize_action_name(action_name)
            if name in state.disabled_actions:
                return EnablementDecision(
                    enabled=False,
                    scope="selective",
                    config_key=DISABLE_KEY,
                    reason=(
                        f"Autofix for '{name}' disabled by "
                        f"{DISABLE_KEY}={self._config.get(DISABLE_KEY)!r}. "
                        f"To enable: remove '{name}' from {DISABLE_KEY}"
                    ),
                )

        return EnablementDecision(enabled=True)

    def is_component_enabled(self, component: str) -> bool:
        """Whether a monitored component is selected to run at all."""
        use = [m for m in self._config.get_list(USE_MODULES_KEY) if m != ALL_MODULES]
        if use and component not in use:
            return False
        return component not in self._config.get_list(IGNORE_MODULES_KEY)

    @staticmethod
    def _global_enabled(raw: str | None) -> bool:
        if raw is None or raw.strip() == "":
            return True
        lowered = raw.strip().lower()
        if lowered in _ENABLED_VALUES:
            return True
        if lowered not in _DISABLED_VALUES:
            logger.warning(
                "Unrecognized %s=%r, treating autofix as disabled", AUTOFIX_KEY, raw
            )
        return False
