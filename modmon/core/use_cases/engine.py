"""
Engine assembly — wires resolver, grace store, registry and dispatcher.

Shared by every use case so the CLI and tests build the engine the
same way.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from modmon.adapters.registry import HandlerRegistry
from modmon.adapters.remediation import register_builtin_handlers
from modmon.core.config.catalog_loader import discover_catalog
from modmon.core.config.loader import ConfigResolver
from modmon.core.context import get_monitor_root
from modmon.core.engine.dispatcher import AutofixDispatcher
from modmon.core.models.config import EffectiveConfig
from modmon.core.persistence.audit import AuditWriter
from modmon.core.persistence.grace_store import FileGraceStore, default_grace_dir

logger = logging.getLogger(__name__)

GRACE_DIR_KEY = "GRACE_DIR"
SEVERITIES = ("warning", "critical", "emergency")


@dataclass
class Engine:
    """The assembled autofix engine for one monitor root."""

    root: Path
    resolver: ConfigResolver
    store: FileGraceStore
    registry: HandlerRegistry
    dispatcher: AutofixDispatcher
    audit: AuditWriter | None = None


def grace_dir_for(config: EffectiveConfig) -> Path:
    configured = config.get(GRACE_DIR_KEY)
    return Path(configured) if configured else default_grace_dir()


def cooldown_for(config: EffectiveConfig, severity: str) -> int:
    """``<SEVERITY>_COOLDOWN`` from config, e.g. CRITICAL_COOLDOWN."""
    defaults = {"warning": 600, "critical": 180, "emergency": 60}
    return config.get_int(f"{severity.upper()}_COOLDOWN", defaults.get(severity, 180))


def build_engine(
    root: Path | None = None,
    dry_run: bool = False,
    override_grace: bool = False,
    audit: bool = True,
) -> Engine:
    """Assemble the engine. ``root`` defaults to the process context."""
    root = root or get_monitor_root() or Path.cwd()
    resolver = ConfigResolver(root=root)
    base_config = resolver.resolve()

    store = FileGraceStore(grace_dir_for(base_config))
    registry = register_builtin_handlers(HandlerRegistry(), discover_catalog(root))
    writer = AuditWriter(monitor_root=root) if audit else None

    dispatcher = AutofixDispatcher(
        resolver,
        store,
        audit=writer,
        dry_run=dry_run,
        override_grace=override_grace,
    )
    logger.debug("Engine ready: root=%s grace_dir=%s", root, store.directory)
    return Engine(
        root=root,
        resolver=resolver,
        store=store,
        registry=registry,
        dispatcher=dispatcher,
        audit=writer,
    )
