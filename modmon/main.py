"""
Modular Monitor — CLI entrypoint.

Usage:
    modmon --help
    modmon dispatch disk-cleanup --requested-by disk --cooldown 300
    modmon status
    modmon config show --component thermal
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from modmon import __version__
from modmon.core.observability.logging_config import (
    LOG_FILE_ENV,
    LOG_FILE_LEVEL_ENV,
    resolve_console_level,
    setup_logging,
)

if TYPE_CHECKING:
    from modmon.core.persistence.grace_store import FileGraceStore

_OUTCOME_STYLE = {
    "executed": ("✅", "green"),
    "skipped_grace_period": ("⏳", "yellow"),
    "skipped_disabled": ("⊘", "yellow"),
    "dry_run_reported": ("🔍", "cyan"),
}

_HEALTH_STYLE = {
    "healthy": ("💚", "green"),
    "degraded": ("🟡", "yellow"),
    "unhealthy": ("🔴", "red"),
    "unknown": ("❔", "white"),
}


def _root(ctx: click.Context) -> Path:
    return ctx.obj["root"]


@click.group()
@click.version_option(version=__version__, prog_name="modmon")
@click.option("--verbose", "-v", is_flag=True, help="Log every dispatch decision.")
@click.option("--quiet", "-q", is_flag=True, help="Only log errors.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--root",
    "root_path",
    type=click.Path(file_okay=False),
    default=None,
    envvar="MODMON_ROOT",
    help="Monitor root holding system_default.conf (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    root_path: str | None,
) -> None:
    """Modular Monitor — coordinate autofix actions across health checks."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug

    # Register monitor root in core context
    from modmon.core.config.loader import find_monitor_root
    from modmon.core.context import set_monitor_root

    root = Path(root_path).resolve() if root_path else (find_monitor_root() or Path.cwd())
    ctx.obj["root"] = root
    set_monitor_root(root)

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_console_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(LOG_FILE_ENV),
        log_file_level=os.environ.get(LOG_FILE_LEVEL_ENV),
        quiet_third_party=not debug,
    )


# ── dispatch ────────────────────────────────────────────────────


@cli.command()
@click.argument("action")
@click.argument("args", nargs=-1)
@click.option("--requested-by", "-r", required=True, help="Component requesting the action.")
@click.option(
    "--cooldown",
    type=click.IntRange(min=0),
    default=None,
    help="Cooldown in seconds (default: <SEVERITY>_COOLDOWN from config).",
)
@click.option(
    "--severity",
    type=click.Choice(["warning", "critical", "emergency"]),
    default="critical",
    show_default=True,
    help="Selects the configured cooldown when --cooldown is not given.",
)
@click.option("--dry-run", is_flag=True, help="Report what would be done without changing anything.")
@click.option("--force", is_flag=True, help="Ignore the grace period.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def dispatch(
    ctx: click.Context,
    action: str,
    args: tuple[str, ...],
    requested_by: str,
    cooldown: int | None,
    severity: str,
    dry_run: bool,
    force: bool,
    as_json: bool,
) -> None:
    """Dispatch ACTION on behalf of a monitoring component.

    Exit codes: 0 done or not needed, 1 failed, 2 held back by the grace period.

    Examples:

        modmon dispatch disk-cleanup -r disk --cooldown 300

        modmon dispatch graphics -r gpu --severity warning --dry-run

        modmon dispatch emergency-process-kill -r thermal -- 4242
    """
    from modmon.core.use_cases.dispatch import run_dispatch

    result = run_dispatch(
        action_name=action,
        requested_by=requested_by,
        args=list(args),
        cooldown_seconds=cooldown,
        severity=severity,
        root=_root(ctx),
        dry_run=dry_run,
        override_grace=force,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(result.exit_code)

    outcome = result.outcome
    assert outcome is not None
    icon, color = _OUTCOME_STYLE[outcome.kind]
    if not outcome.success:
        icon, color = "❌", "red"

    click.secho(f"{icon} {outcome.action_name} ", fg=color, bold=True, nl=False)
    click.echo(f"[{outcome.kind}] ({outcome.duration_ms}ms)")
    if outcome.detail:
        click.echo(f"   {outcome.detail}")
    if outcome.planned and (outcome.dry_run or ctx.obj.get("verbose")):
        for line in outcome.planned:
            click.echo(f"     │ {line}")

    sys.exit(result.exit_code)


# ── status / health ─────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show autofix enablement and grace periods."""
    from modmon.core.use_cases.status import get_status

    result = get_status(root=_root(ctx))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    state = result.enablement
    click.secho(f"\n🛠  Autofix: {result.root}", fg="cyan", bold=True)
    if state.global_enabled:
        click.secho("   Enabled", fg="green")
    else:
        click.secho(f"   Disabled (AUTOFIX={state.global_value})", fg="yellow")
    if state.disabled_actions:
        click.echo(f"   Disabled actions: {' '.join(sorted(state.disabled_actions))}")
    click.echo(f"   Monitor interval: {result.monitor_interval}s")
    click.echo()

    click.secho(f"   Grace records: {len(result.records)}", fg="white", bold=True)
    for entry in result.records:
        rec = entry.record
        if entry.in_grace:
            click.secho(f"     ⏳ {rec.action_name}", fg="yellow", nl=False)
            click.echo(f"  {entry.remaining_seconds}s remaining")
        else:
            click.secho(f"     ✓ {rec.action_name}", fg="green", nl=False)
            click.echo("  expired")
        click.echo(f"        by {rec.requested_by} at {rec.started_at_iso} (cooldown {rec.cooldown_seconds}s)")
    for name in result.corrupt:
        click.secho(f"     ⚠️  {name}: corrupt record", fg="red")
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def health(ctx: click.Context, as_json: bool) -> None:
    "Show engine health — config layers, grace store, handlers."
    from modmon.core.observability.health import check_system_health
    from modmon.core.use_cases.engine import build_engine

    engine = build_engine(root=_root(ctx), audit=False)
    system_health = check_system_health(
        config=engine.resolver.resolve(),
        store=engine.store,
        registry=engine.registry,
    )

    if as_json:
        click.echo(json.dumps(system_health.to_dict(), indent=2))
        return

    icon, color = _HEALTH_STYLE.get(system_health.status, ("❔", "white"))
    click.echo()
    click.secho(f"{icon} System Health: {system_health.status.upper()}", fg=color, bold=True)
    click.echo(f"   {system_health.timestamp}")
    click.echo()

    for component in system_health.components:
        c_icon, c_color = _HEALTH_STYLE.get(component.status, ("❔", "white"))
        click.secho(f"   {c_icon} {component.name}", fg=c_color, bold=True)
        click.echo(f"      {component.message}")

        if ctx.obj.get("verbose") and component.details:
            for key, val in component.details.items():
                click.echo(f"      {key}: {val}")

    click.echo()


# ── config ──────────────────────────────────────────────────────


@cli.group()
def config() -> None:
    """Configuration layer commands."""


@config.command("show")
@click.option("--component", "-m", default=None, help="Resolve for a monitored component.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_show(ctx: click.Context, component: str | None, as_json: bool) -> None:
    """Show the effective configuration and where each value came from."""
    from modmon.core.config.loader import ConfigResolver
    from modmon.core.errors import InvalidIdentifier

    try:
        effective = ConfigResolver(root=_root(ctx)).resolve(component)
    except InvalidIdentifier as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(
            {
                "component": effective.component,
                "values": effective.values,
                "sources": effective.sources,
                "warnings": effective.warnings,
            },
            indent=2,
        ))
        return

    label = effective.component or "global"
    click.secho(f"\n⚙️  Effective configuration ({label})", fg="cyan", bold=True)
    width = max((len(k) for k in effective.values), default=0)
    for key in sorted(effective.values):
        source = effective.source_of(key)
        click.echo(f"   {key.ljust(width)} = {effective.values[key]!s:<12} ", nl=False)
        click.secho(f"[{source}]", fg="green" if source == "environment" else "white")
    for warning in effective.warnings:
        click.secho(f"   ⚠️  {warning}", fg="yellow")
    click.echo()


@config.command("check")
@click.option("--component", "-m", default=None, help="Check layers for a monitored component.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, component: str | None, as_json: bool) -> None:
    """Validate configuration layers."""
    from modmon.core.use_cases.config_check import check_config

    result = check_config(root=_root(ctx), component=component)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.config is not None:
        for layer in result.config.layers:
            marker = {"loaded": "✓", "builtin": "✓", "missing": "·"}.get(layer.status, "✗")
            where = layer.path or layer.tier
            click.echo(f"   {marker} {layer.name:<20} {layer.status:<10} {where}")
        click.echo()

    if result.valid:
        click.secho("✅ Configuration is valid", fg="green", bold=True)
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        sys.exit(1)


# ── grace ───────────────────────────────────────────────────────


@cli.group()
def grace() -> None:
    """Grace period record commands."""


def _store(ctx: click.Context) -> FileGraceStore:
    from modmon.core.config.loader import ConfigResolver
    from modmon.core.persistence.grace_store import FileGraceStore
    from modmon.core.use_cases.engine import grace_dir_for

    return FileGraceStore(grace_dir_for(ConfigResolver(root=_root(ctx)).resolve()))


@grace.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def grace_list(ctx: click.Context, as_json: bool) -> None:
    """List grace records with their remaining time."""
    from modmon.core.use_cases.status import get_status

    result = get_status(root=_root(ctx), store=_store(ctx))

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in result.records], indent=2))
        return

    if not result.records:
        click.echo("No grace records.")
        return
    for entry in result.records:
        rec = entry.record
        state = f"{entry.remaining_seconds}s remaining" if entry.in_grace else "expired"
        click.echo(f"{rec.action_name}\t{rec.requested_by}\t{rec.started_at_iso}\t{state}")


@grace.command("clear")
@click.argument("action", required=False)
@click.pass_context
def grace_clear(ctx: click.Context, action: str | None) -> None:
    """Delete the grace record for ACTION, or all records."""
    from modmon.core.errors import InvalidIdentifier

    try:
        removed = _store(ctx).clear(action)
    except InvalidIdentifier as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)
    click.secho(f"🧹 Removed {removed} grace record(s)", fg="cyan")


@grace.command("cleanup")
@click.option("--retention", type=click.IntRange(min=0), default=None, help="Max record age in seconds.")
@click.pass_context
def grace_cleanup(ctx: click.Context, retention: int | None) -> None:
    """Remove stale and corrupt grace records."""
    from modmon.core.config.loader import ConfigResolver
    from modmon.core.persistence.grace_store import DEFAULT_RETENTION_SECONDS

    if retention is None:
        effective = ConfigResolver(root=_root(ctx)).resolve()
        retention = effective.get_int("GRACE_RETENTION_SECONDS", DEFAULT_RETENTION_SECONDS)
    removed = _store(ctx).cleanup(retention)
    click.secho(f"🧹 Removed {len(removed)} stale record(s)", fg="cyan")
    for name in removed:
        click.echo(f"   • {name}")


# ── handlers ────────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def handlers(ctx: click.Context, as_json: bool) -> None:
    """List dispatchable actions and variant families."""
    from modmon.core.use_cases.engine import build_engine

    described = build_engine(root=_root(ctx), audit=False).registry.describe()

    if as_json:
        click.echo(json.dumps(described, indent=2))
        return

    click.secho("\n🧰 Actions", fg="cyan", bold=True)
    for name, description in described["actions"].items():
        click.echo(f"   • {name}", nl=False)
        click.echo(f"  {description}" if description else "")
    if described["families"]:
        click.echo()
        click.secho("   Variant families", fg="white", bold=True)
        for family, variants in described["families"].items():
            click.echo(f"   • {family}: {', '.join(variants)}")
    click.echo()


if __name__ == "__main__":
    cli()
