"""
Autofix dispatcher — the single entry point checks call to remediate.

    dispatch(action_name, requested_by, cooldown_seconds, handler, *args)

Linear state machine:

    1. resolve the EffectiveConfig for the requesting component
    2. enablement (global AUTOFIX, selective DISABLE_AUTOFIX) → skipped_disabled
    3. cleanup stale grace records
    4. grace check, unless overridden → skipped_grace_period
    5. start the grace record (before the handler runs)
    6. invoke the handler, live or dry-run
    7. log, audit and return the outcome

Dry-run and live share steps 1–5; only the handler body differs. Every
call yields exactly one DispatchOutcome. Runtime failures never raise;
an invalid action or component name or a negative cooldown does,
before any side effect.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from typing import Any

from modmon.adapters.base import HandlerContext, HandlerResult
from modmon.adapters.shell.command import CommandRunner
from modmon.core.config.loader import ConfigResolver
from modmon.core.engine.enablement import EnablementPolicy
from modmon.core.engine.identifiers import validate_identifier
from modmon.core.errors import HandlerFailure
from modmon.core.models.outcome import DispatchOutcome
from modmon.core.persistence.audit import AuditWriter
from modmon.core.persistence.grace_store import (
    DEFAULT_MONITOR_INTERVAL_SECONDS,
    DEFAULT_RETENTION_SECONDS,
    GraceStore,
)

logger = logging.getLogger(__name__)

# Arguments mentioning these are echoed as device info when autofix is disabled
DEVICE_KEYWORDS = (
    "Device", "Mouse", "Keyboard", "Hub", "Storage", "Ethernet",
    "Adapter", "Camera", "Audio", "Controller", "USB", "device", "usb",
)


def extract_device_info(args: Iterable[str]) -> str | None:
    """The joined arguments if they describe a device, else None."""
    joined = " ".join(args)
    if any(keyword in joined for keyword in DEVICE_KEYWORDS):
        return joined
    return None


def normalize_result(action_name: str, raw: Any) -> HandlerResult:
    """Coerce a handler's return value into a HandlerResult.

    Accepts HandlerResult, ``(success, detail)``, bool, an integer exit
    status, or None (success).
    """
    if isinstance(raw, HandlerResult):
        return raw
    if raw is None:
        return HandlerResult.ok()
    if isinstance(raw, bool):
        return HandlerResult(success=raw)
    if isinstance(raw, int):
        if raw == 0:
            return HandlerResult.ok()
        return HandlerResult.failed(f"exit status {raw}")
    if isinstance(raw, tuple) and len(raw) == 2:
        success, detail = raw
        return HandlerResult(success=bool(success), detail=str(detail))
    failure = HandlerFailure(action_name, f"unexpected handler result {raw!r}")
    logger.error("%s", failure)
    return HandlerResult.failed(failure.detail)


class AutofixDispatcher:
    """Wraps remediation handlers with enablement, cooldown and audit.

    Args:
        resolver: Builds the EffectiveConfig for each dispatch.
        store: Shared grace period store.
        audit: Optional ledger; every outcome is appended.
        dry_run: Process-wide dry-run flag. ``DRY_RUN=true`` in the
            resolved config also enables it.
        override_grace: Skip the grace check (``--force``).
            ``OVERRIDE_GRACE=true`` in the resolved config also enables it.
        runner_factory: Builds the CommandRunner handed to handlers.
    """

    def __init__(
        self,
        resolver: ConfigResolver,
        store: GraceStore,
        audit: AuditWriter | None = None,
        dry_run: bool = False,
        override_grace: bool = False,
        runner_factory: Callable[[bool], CommandRunner] = CommandRunner,
    ):
        self._resolver = resolver
        self._store = store
        self._audit = audit
        self._dry_run = dry_run
        self._override_grace = override_grace
        self._runner_factory = runner_factory

    @property
    def store(self) -> GraceStore:
        return self._store

    def dispatch(
        self,
        action_name: str,
        requested_by: str,
        cooldown_seconds: int,
        handler: Callable[..., Any],
        *args: Any,
    ) -> DispatchOutcome:
        """Run ``handler`` for ``action_name`` if enablement and cooldown allow.

        Raises:
            InvalidIdentifier: If ``action_name`` or ``requested_by`` is
                not a valid name.
            ValueError: If ``cooldown_seconds`` is negative.
        """
        validate_identifier(action_name, "action")
        validate_identifier(requested_by, "component")
        if cooldown_seconds < 0:
            raise ValueError(f"cooldown_seconds must be >= 0, got {cooldown_seconds}")

        start = time.monotonic()
        str_args = [str(a) for a in args]
        logger.info(
            "dispatch requested: %s by %s (cooldown %ds, args: %s)",
            action_name, requested_by, cooldown_seconds, " ".join(str_args) or "<none>",
        )

        # 1. Configuration
        config = self._resolver.resolve(requested_by)
        dry_run = self._dry_run or config.get_bool("DRY_RUN")
        override_grace = self._override_grace or config.get_bool("OVERRIDE_GRACE")

        # 2. Enablement
        decision = EnablementPolicy(config).evaluate(action_name)
        if not decision.enabled:
            assert decision.scope is not None and decision.config_key is not None
            device = extract_device_info(str_args)
            logger.info(
                "skipped: disabled (%s): would run %s for %s with args [%s]%s. %s",
                decision.scope, action_name, requested_by, " ".join(str_args),
                f", device: {device}" if device else "", decision.reason,
            )
            return self._finish(start, DispatchOutcome.skipped_disabled(
                action_name, requested_by,
                scope=decision.scope,
                config_key=decision.config_key,
                detail=decision.reason,
                args=str_args,
                dry_run=dry_run,
            ))

        # 3. Stale grace records
        retention = config.get_int("GRACE_RETENTION_SECONDS", DEFAULT_RETENTION_SECONDS)
        try:
            self._store.cleanup(retention)
        except OSError as e:
            logger.warning("Grace record cleanup failed: %s", e)

        # 4. Cooldown
        interval = config.get_int("MONITOR_INTERVAL", DEFAULT_MONITOR_INTERVAL_SECONDS)
        if override_grace:
            logger.info("Grace period check overridden for %s", action_name)
        else:
            check = self._store.check(action_name, cooldown_seconds, interval)
            if check.in_grace:
                record = check.record
                detail = (
                    f"'{action_name}' is in its grace period: {check.remaining_seconds}s "
                    f"remaining (cooldown {cooldown_seconds}s + monitor interval {interval}s; "
                    f"last started by {record.requested_by} at {record.started_at_iso})"
                )
                logger.info(
                    "skipped: grace period (%ds remaining): %s requested by %s",
                    check.remaining_seconds, action_name, requested_by,
                )
                return self._finish(start, DispatchOutcome.skipped_grace_period(
                    action_name, requested_by,
                    remaining_seconds=check.remaining_seconds,
                    detail=detail,
                    args=str_args,
                    dry_run=dry_run,
                ))

        # 5. Claim the cooldown before the handler runs
        try:
            self._store.start(action_name, cooldown_seconds, requested_by)
        except OSError as e:
            logger.warning("Could not record grace period for %s: %s", action_name, e)

        # 6. Handler
        runner = self._runner_factory(dry_run)
        ctx = HandlerContext(
            action_name=action_name,
            requested_by=requested_by,
            cooldown_seconds=cooldown_seconds,
            config=config,
            runner=runner,
            dry_run=dry_run,
        )
        logger.info("executing: %s%s", action_name, " [dry-run]" if dry_run else "")
        result = self._invoke(handler, ctx, str_args)
        planned = result.planned or list(runner.planned)

        # 7. Outcome
        if dry_run:
            detail = result.detail or _describe_plan(action_name, planned)
            logger.info("dry-run: %s: %s", action_name, detail)
            outcome = DispatchOutcome.dry_run_reported(
                action_name, requested_by,
                success=result.success,
                detail=detail,
                args=str_args,
                planned=planned,
            )
        else:
            if result.success:
                logger.info("succeeded: %s: %s", action_name, result.detail or "ok")
            else:
                logger.error("failed: %s: %s", action_name, result.detail or "handler reported failure")
            outcome = DispatchOutcome.executed(
                action_name, requested_by,
                success=result.success,
                detail=result.detail,
                args=str_args,
                planned=planned,
            )
        return self._finish(start, outcome)

    def _invoke(
        self,
        handler: Callable[..., Any],
        ctx: HandlerContext,
        args: list[str],
    ) -> HandlerResult:
        try:
            raw = handler(ctx, *args)
        except Exception as e:
            failure = HandlerFailure(ctx.action_name, f"{type(e).__name__}: {e}")
            logger.error("%s", failure, exc_info=logger.isEnabledFor(logging.DEBUG))
            return HandlerResult.failed(failure.detail)
        return normalize_result(ctx.action_name, raw)

    def _finish(self, start: float, outcome: DispatchOutcome) -> DispatchOutcome:
        outcome.duration_ms = int((time.monotonic() - start) * 1000)
        if self._audit is not None:
            self._audit.record(outcome)
        return outcome


def _describe_plan(action_name: str, planned: list[str]) -> str:
    if planned:
        return f"Would run for '{action_name}': " + "; ".join(planned)
    return f"Dry-run of '{action_name}' found no changes to make"
