"""
Config check use case — report how each layer loaded and flag bad values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from modmon.core.config.loader import SYSTEM_DEFAULT_FILE, ConfigResolver
from modmon.core.context import get_monitor_root
from modmon.core.errors import InvalidIdentifier
from modmon.core.models.config import EffectiveConfig

# Keys that must hold whole numbers
_INTEGER_KEYS = (
    "MONITOR_INTERVAL",
    "GRACE_RETENTION_SECONDS",
    "TEMP_WARNING",
    "TEMP_CRITICAL",
    "TEMP_EMERGENCY",
    "MEMORY_WARNING",
    "MEMORY_CRITICAL",
    "PROCESS_CPU_THRESHOLD",
    "KILL_PROCESS_WAIT_TIME",
    "WARNING_COOLDOWN",
    "CRITICAL_COOLDOWN",
    "EMERGENCY_COOLDOWN",
)
_BOOLEAN_KEYS = ("AUTOFIX", "DRY_RUN", "OVERRIDE_GRACE", "ENABLE_EMERGENCY_KILL", "ENABLE_EMERGENCY_SHUTDOWN")
_BOOLEAN_WORDS = frozenset({"true", "false", "1", "0", "yes", "no", "on", "off", ""})


@dataclass
class ConfigCheckResult:
    """Result of a configuration check."""

    config: EffectiveConfig | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "valid": self.valid,
            "errors": self.errors,
            "warnings": self.warnings,
        }
        if self.config is not None:
            result["component"] = self.config.component
            result["layers"] = [
                {
                    "name": layer.name,
                    "tier": layer.tier,
                    "path": layer.path,
                    "status": layer.status,
                    "keys": len(layer.values),
                    "error": layer.error,
                }
                for layer in self.config.layers
            ]
        return result


def check_config(root: Path | None = None, component: str | None = None) -> ConfigCheckResult:
    """Resolve configuration and validate it.

    Malformed or unreadable layers and non-numeric threshold values are
    errors; a missing system_default.conf is a warning.
    """
    root = root or get_monitor_root() or Path.cwd()
    result = ConfigCheckResult()

    try:
        config = ConfigResolver(root=root).resolve(component)
    except InvalidIdentifier as e:
        result.errors.append(str(e))
        return result
    result.config = config

    for layer in config.layers:
        if layer.status in ("malformed", "unreadable"):
            result.errors.append(layer.error or f"Layer {layer.name} {layer.status}")

    system_default = config.layer("system_default")
    if system_default is not None and system_default.status == "missing":
        result.warnings.append(f"No {SYSTEM_DEFAULT_FILE} in {root}, using built-in defaults")

    for key in _INTEGER_KEYS:
        value = config.get(key)
        if value is not None and value.strip() and not value.strip().lstrip("-").isdigit():
            result.errors.append(f"{key}={value!r} is not an integer ({config.source_of(key)})")

    for key in _BOOLEAN_KEYS:
        value = config.get(key)
        if value is not None and value.strip().lower() not in _BOOLEAN_WORDS:
            result.warnings.append(f"{key}={value!r} is not true/false ({config.source_of(key)})")

    return result
