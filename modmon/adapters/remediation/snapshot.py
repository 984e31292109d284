"""
Config snapshot — a safe diagnostic action.

Writes the effective configuration the requesting component saw,
with the layer each value came from, to
``<dir>/config-<component>.txt``. Useful for checking precedence and
the whole dispatch path without touching the system.
"""

from __future__ import annotations

import logging
import tempfile
from datetime import UTC, datetime
from pathlib import Path

from modmon.adapters.base import HandlerContext, HandlerResult, RemediationHandler

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_DIRNAME = "modular-monitor-test"
SNAPSHOT_DIR_KEY = "SNAPSHOT_DIR"


class ConfigSnapshotHandler(RemediationHandler):
    """Writes the resolved configuration to a text file."""

    description = "Write the resolved configuration to a snapshot file (diagnostic)"

    def __init__(self, directory: Path | None = None):
        self._directory = directory

    @property
    def name(self) -> str:
        return "config-snapshot"

    def target_path(self, ctx: HandlerContext) -> Path:
        directory = self._directory
        if directory is None:
            configured = ctx.config.get(SNAPSHOT_DIR_KEY)
            directory = (
                Path(configured) if configured
                else Path(tempfile.gettempdir()) / DEFAULT_SNAPSHOT_DIRNAME
            )
        return directory / f"config-{ctx.requested_by}.txt"

    def render(self, ctx: HandlerContext, *args: str) -> str:
        lines = [
            "# Modular Monitor configuration snapshot",
            f"# Generated: {datetime.now(UTC).isoformat()}",
            f"# Requested by: {ctx.requested_by}",
            f"# Cooldown: {ctx.cooldown_seconds}s",
        ]
        if args:
            lines.append(f"# Message: {' '.join(args)}")
        lines.append("")
        for key in sorted(ctx.config.values):
            lines.append(f"{key}={ctx.config.values[key]}  # {ctx.config.source_of(key)}")
        return "\n".join(lines) + "\n"

    def run(self, ctx: HandlerContext, *args: str) -> HandlerResult:
        path = self.target_path(ctx)
        content = self.render(ctx, *args)

        if ctx.dry_run:
            return HandlerResult.ok(
                f"Would write {len(ctx.config.values)} config keys to {path}",
                planned=[f"write {path}"],
            )

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        logger.info("Configuration snapshot written to %s", path)
        return HandlerResult.ok(f"Wrote {len(ctx.config.values)} config keys to {path}")
