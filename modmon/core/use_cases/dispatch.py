"""
Dispatch use case — run one registered action through the dispatcher.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from modmon.core.engine.identifiers import validate_identifier
from modmon.core.errors import InvalidIdentifier
from modmon.core.models.outcome import EXIT_FAILED, DispatchOutcome
from modmon.core.use_cases.engine import build_engine, cooldown_for

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    """Outcome of a CLI dispatch, or why it could not be attempted."""

    outcome: DispatchOutcome | None = None
    error: str | None = None

    @property
    def exit_code(self) -> int:
        if self.outcome is None:
            return EXIT_FAILED
        return self.outcome.exit_code

    def to_dict(self) -> dict[str, Any]:
        if self.error:
            return {"error": self.error, "exit_code": self.exit_code}
        assert self.outcome is not None
        data = self.outcome.model_dump(mode="json")
        data["exit_code"] = self.exit_code
        return data


def run_dispatch(
    action_name: str,
    requested_by: str,
    args: list[str] | None = None,
    cooldown_seconds: int | None = None,
    severity: str = "critical",
    root: Path | None = None,
    dry_run: bool = False,
    override_grace: bool = False,
) -> DispatchResult:
    """Dispatch a registered action or family by name.

    When ``cooldown_seconds`` is None the cooldown comes from the
    ``<SEVERITY>_COOLDOWN`` config key of the requesting component.
    """
    try:
        validate_identifier(action_name, "action")
        validate_identifier(requested_by, "component")
    except InvalidIdentifier as e:
        logger.error("%s", e)
        return DispatchResult(error=str(e))

    engine = build_engine(root=root, dry_run=dry_run, override_grace=override_grace)

    handler = engine.registry.get_action(action_name)
    if handler is None:
        known = ", ".join(engine.registry.list_actions())
        return DispatchResult(error=f"No handler registered for '{action_name}' (known: {known})")

    if cooldown_seconds is None:
        cooldown_seconds = cooldown_for(engine.resolver.resolve(requested_by), severity)

    outcome = engine.dispatcher.dispatch(
        action_name, requested_by, cooldown_seconds, handler, *(args or [])
    )
    return DispatchResult(outcome=outcome)
