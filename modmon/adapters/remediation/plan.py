"""
Command plan handler — runs a catalog entry's steps through the runner.

Steps form chains: a normal step starts a chain and each following
``fallback`` step joins it. A chain succeeds as soon as one of its
steps succeeds. A failed chain fails the plan unless its first step is
``optional``. Steps whose ``requires`` binary is missing are skipped.
"""

from __future__ import annotations

import logging
import re
import shlex
from collections.abc import Sequence

from modmon.adapters.base import HandlerContext, HandlerResult, RemediationHandler
from modmon.core.models.catalog import CommandStep

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\{(arg\d+|args)\}")


def render_argv(argv: Sequence[str], args: Sequence[str]) -> list[str]:
    """Substitute ``{argN}`` and ``{args}`` placeholders. Missing args become empty."""

    def _sub(m: re.Match[str]) -> str:
        key = m.group(1)
        if key == "args":
            return " ".join(args)
        index = int(key[3:])
        return args[index] if index < len(args) else ""

    return [_PLACEHOLDER_RE.sub(_sub, part).rstrip() for part in argv]


def _chains(steps: Sequence[CommandStep]) -> list[list[CommandStep]]:
    chains: list[list[CommandStep]] = []
    for step in steps:
        if step.fallback and chains:
            chains[-1].append(step)
        else:
            chains.append([step])
    return chains


class CommandPlanHandler(RemediationHandler):
    """Handler backed by a list of catalog command steps."""

    def __init__(
        self,
        handler_name: str,
        steps: Sequence[CommandStep],
        description: str = "",
        enabled_key: str | None = None,
    ):
        self._name = handler_name
        self._steps = list(steps)
        self.description = description
        self._enabled_key = enabled_key

    @property
    def name(self) -> str:
        return self._name

    @property
    def steps(self) -> list[CommandStep]:
        return list(self._steps)

    def run(self, ctx: HandlerContext, *args: str) -> HandlerResult:
        if self._enabled_key and not ctx.config.get_bool(self._enabled_key, True):
            return HandlerResult.ok(
                f"'{self._name}' is switched off "
                f"({self._enabled_key}={ctx.config.get(self._enabled_key)!r}), nothing done"
            )

        lines: list[str] = []
        failed: list[str] = []

        for chain in _chains(self._steps):
            chain_ok = False
            for step in chain:
                argv = render_argv(step.run, args)
                if step.requires and not ctx.runner.available(step.requires):
                    lines.append(f"skipped: {shlex.join(argv)} ({step.requires} not installed)")
                    logger.info("Skipping %s: %s not installed", shlex.join(argv), step.requires)
                    continue
                result = ctx.runner.run(argv, step.description, step.timeout)
                lines.append(result.summary())
                if result.ok:
                    chain_ok = True
                    break
            if not chain_ok and not chain[0].optional:
                failed.append(chain[0].description or shlex.join(chain[0].run))

        planned = list(ctx.runner.planned)
        detail = "; ".join(lines) or "no steps"
        if failed:
            return HandlerResult.failed(
                f"{len(failed)} step(s) failed ({', '.join(failed)}): {detail}",
                planned=planned,
            )
        return HandlerResult.ok(detail, planned=planned)
