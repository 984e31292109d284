"""
Configuration resolver — merges the four precedence tiers.

Tiers, lowest first:

    1. Defaults            built-in baseline, then <root>/system_default.conf
    2. ComponentDefaults   <root>/modules/<component>/config.conf,
                           then <root>/config/<component>.conf
    3. MachineOverrides    <root>/config/SYSTEM.conf
    4. EnvironmentOverrides  recognized keys from the process environment

Every resolve builds a fresh ``EffectiveConfig`` bottom-up. Layer files
are parsed, never executed, and the process environment is only read,
so a key set in the environment always wins and no lower layer can
clobber it on a later reload.
"""

from __future__ import annotations

import logging
import os
import re
from collections import ChainMap
from collections.abc import Iterable, Mapping
from pathlib import Path

from modmon.core.context import get_monitor_root
from modmon.core.engine.identifiers import validate_identifier
from modmon.core.errors import ConfigLayerUnreadable, ConfigMalformed
from modmon.core.models.config import ConfigLayer, EffectiveConfig, LayerTier

logger = logging.getLogger(__name__)

SYSTEM_DEFAULT_FILE = "system_default.conf"
MACHINE_OVERRIDE_FILE = "SYSTEM.conf"
ROOT_ENV_VAR = "MODMON_ROOT"

# Baseline used when system_default.conf is absent or partial.
BUILTIN_DEFAULTS: dict[str, str] = {
    # Autofix coordination
    "AUTOFIX": "true",
    "DISABLE_AUTOFIX": "",
    "DRY_RUN": "false",
    "OVERRIDE_GRACE": "false",
    "MONITOR_INTERVAL": "120",
    "GRACE_RETENTION_SECONDS": "86400",
    # Component selection
    "USE_MODULES": "",
    "IGNORE_MODULES": "",
    # Variant selection
    "GRAPHICS_CHIPSET": "auto",
    "DISPLAY_SERVER": "auto",
    "DISPLAY_COMPOSITOR": "auto",
    "OS_DISTRIBUTION": "auto",
    "PREFERRED_KERNEL_BRANCH": "",
    # Thresholds
    "TEMP_WARNING": "85",
    "TEMP_CRITICAL": "90",
    "TEMP_EMERGENCY": "95",
    "TEMP_CHECK_INTERVAL": "10",
    "MEMORY_WARNING": "85",
    "MEMORY_CRITICAL": "95",
    "USB_RESET_WARNING": "10",
    "USB_RESET_CRITICAL": "20",
    "GPU_ERROR_WARNING": "5",
    "GPU_ERROR_CRITICAL": "15",
    "PROCESS_CPU_THRESHOLD": "10",
    "KILL_PROCESS_WAIT_TIME": "3",
    # Emergency actions
    "ENABLE_EMERGENCY_KILL": "true",
    "ENABLE_EMERGENCY_SHUTDOWN": "true",
    # Cooldowns by severity
    "WARNING_COOLDOWN": "600",
    "CRITICAL_COOLDOWN": "180",
    "EMERGENCY_COOLDOWN": "60",
    "LOG_LEVEL": "info",
}

# Environment keys honoured even when no file layer mentions them.
ENV_OVERRIDE_KEYS: tuple[str, ...] = (
    "AUTOFIX",
    "DISABLE_AUTOFIX",
    "PREFERRED_KERNEL_BRANCH",
    "GRAPHICS_CHIPSET",
    "DISPLAY_SERVER",
    "DISPLAY_COMPOSITOR",
    "OS_DISTRIBUTION",
    "USE_MODULES",
    "IGNORE_MODULES",
    "OVERRIDE_GRACE",
    "DRY_RUN",
    "MONITOR_INTERVAL",
    "GRACE_DIR",
)

_ASSIGN_RE = re.compile(r"^(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)=(.*)$")
_EXPAND_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


# ── Root discovery ──────────────────────────────────────────────


def find_monitor_root(start_dir: Path | None = None) -> Path | None:
    """Search for system_default.conf starting from ``start_dir``, walking up.

    Returns:
        The directory holding system_default.conf, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        if (current / SYSTEM_DEFAULT_FILE).is_file():
            return current
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


# ── Layer parsing ───────────────────────────────────────────────


def parse_layer_text(
    text: str,
    scope: Mapping[str, str] | None = None,
    path: Path | None = None,
) -> dict[str, str]:
    """Parse ``key=value`` text into a dict.

    Supports comments, ``export`` prefixes, single and double quotes,
    trailing `` # comments`` on unquoted values, and ``${NAME}`` /
    ``${NAME:-default}`` expansion against ``scope`` plus the keys
    already parsed from this text.

    Raises:
        ConfigMalformed: On the first line that is not an assignment.
    """
    values: dict[str, str] = {}
    lookup = ChainMap(values, dict(scope or {}))

    for line_number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue

        match = _ASSIGN_RE.match(line)
        if not match:
            raise ConfigMalformed(path, line_number, raw)

        key, rest = match.group(1), match.group(2).strip()
        value, expand = _unquote(rest, path, line_number, raw)
        values[key] = _expand(value, lookup) if expand else value

    return values


def _unquote(rest: str, path: Path | None, line_number: int, raw: str) -> tuple[str, bool]:
    """Strip quotes and trailing comments. Returns (value, should_expand)."""
    if rest[:1] in ("'", '"'):
        quote = rest[0]
        end = rest.find(quote, 1)
        if end == -1:
            raise ConfigMalformed(path, line_number, raw)
        trailer = rest[end + 1:].strip()
        if trailer and not trailer.startswith("#"):
            raise ConfigMalformed(path, line_number, raw)
        return rest[1:end], quote == '"'

    # Unquoted: " #" starts a comment
    comment = re.search(r"\s#", rest)
    if comment:
        rest = rest[: comment.start()]
    return rest.strip(), True


def _expand(value: str, lookup: Mapping[str, str]) -> str:
    def _sub(m: re.Match[str]) -> str:
        name, default = m.group(1), m.group(2)
        current = lookup.get(name, "")
        if default is not None and current == "":
            return default
        return current

    return _EXPAND_RE.sub(_sub, value)


def load_layer_file(
    path: Path,
    name: str,
    tier: LayerTier,
    scope: Mapping[str, str] | None = None,
) -> ConfigLayer:
    """Load one layer file. Never raises.

    A missing file is an empty layer. An unreadable or malformed file is
    reported in the returned layer's status and logged; its values are
    left empty so the merge skips it as a whole.
    """
    try:
        if not path.is_file():
            logger.debug("Config layer %s not present: %s", name, path)
            return ConfigLayer(name=name, tier=tier, path=str(path), status="missing")
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        unreadable = ConfigLayerUnreadable(path, str(e))
        logger.warning("%s, layer treated as empty", unreadable)
        return ConfigLayer(
            name=name, tier=tier, path=str(path), status="unreadable", error=str(unreadable)
        )

    try:
        values = parse_layer_text(text, scope=scope, path=path)
    except ConfigMalformed as e:
        logger.warning("%s, layer skipped", e)
        return ConfigLayer(
            name=name, tier=tier, path=str(path), status="malformed", error=str(e)
        )

    logger.debug("Loaded config layer %s (%d keys) from %s", name, len(values), path)
    return ConfigLayer(name=name, tier=tier, path=str(path), values=values)


# ── Resolver ────────────────────────────────────────────────────


class ConfigResolver:
    """Builds an ``EffectiveConfig`` for a component.

    Args:
        root: Monitor root directory. Defaults to the process context,
            then the current directory.
        environ: Environment mapping to read overrides from. Defaults to
            ``os.environ`` as it is at resolve time.
        extra_env_keys: Additional keys the environment may override.
        defaults: Replacement for ``BUILTIN_DEFAULTS``.
    """

    def __init__(
        self,
        root: Path | None = None,
        environ: Mapping[str, str] | None = None,
        extra_env_keys: Iterable[str] = (),
        defaults: Mapping[str, str] | None = None,
    ):
        self._root = root
        self._environ = environ
        self._extra_env_keys = frozenset(extra_env_keys)
        self._defaults = dict(BUILTIN_DEFAULTS if defaults is None else defaults)

    @property
    def root(self) -> Path:
        return self._root or get_monitor_root() or Path.cwd()

    def layer_paths(self, component: str | None = None) -> list[tuple[str, LayerTier, Path]]:
        """File layers in merge order as (name, tier, path)."""
        root = self.root
        paths: list[tuple[str, LayerTier, Path]] = [
            ("system_default", "defaults", root / SYSTEM_DEFAULT_FILE),
        ]
        if component:
            paths.append(
                ("component", "component_defaults", root / "modules" / component / "config.conf")
            )
            paths.append(
                ("component_override", "component_defaults", root / "config" / f"{component}.conf")
            )
        paths.append(("machine", "machine_overrides", root / "config" / MACHINE_OVERRIDE_FILE))
        return paths

    def resolve(self, component: str | None = None) -> EffectiveConfig:
        """Merge all tiers for ``component`` into a new ``EffectiveConfig``.

        Raises:
            InvalidIdentifier: If ``component`` is not a valid name. The
                name is checked before it is used in any path.
        """
        if component is not None:
            validate_identifier(component, "component")

        values: dict[str, str] = {}
        sources: dict[str, str] = {}
        layers: list[ConfigLayer] = []
        warnings: list[str] = []

        def _apply(layer: ConfigLayer) -> None:
            layers.append(layer)
            if not layer.applied:
                if layer.error:
                    warnings.append(layer.error)
                return
            for key, value in layer.values.items():
                values[key] = value
                sources[key] = layer.name

        _apply(ConfigLayer(
            name="builtin", tier="defaults", status="builtin", values=dict(self._defaults),
        ))

        for name, tier, path in self.layer_paths(component):
            _apply(load_layer_file(path, name, tier, scope=values))

        _apply(self._environment_layer(values))

        logger.debug(
            "Resolved config for %s: %d keys, %d warnings",
            component or "<global>", len(values), len(warnings),
        )
        return EffectiveConfig(
            component=component,
            values=values,
            sources=sources,
            layers=layers,
            warnings=warnings,
        )

    def _environment_layer(self, merged: Mapping[str, str]) -> ConfigLayer:
        environ = os.environ if self._environ is None else self._environ
        recognized = set(ENV_OVERRIDE_KEYS) | self._extra_env_keys | set(merged)
        # Empty environment values do not override
        env_values = {
            key: environ[key] for key in sorted(recognized) if environ.get(key)
        }
        return ConfigLayer(
            name="environment",
            tier="environment_overrides",
            status="loaded",
            values=env_values,
        )
