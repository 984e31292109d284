"""
Family handler — dispatchable entry point for a variant family.

Tries each selector of the family in order (e.g. compositor, then
display server), resolving the variant through the VariantRouter. The
first resolvable variant runs. When none resolves, the condition has no
autofix on this host and the handler reports success with nothing done.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from modmon.adapters.base import HandlerContext, HandlerResult, RemediationHandler
from modmon.adapters.shell.probes import DETECTORS, Detector
from modmon.core.engine.router import AUTO_VARIANT, VariantRouter
from modmon.core.errors import NoHandlerAvailable
from modmon.core.models.catalog import FamilySpec

logger = logging.getLogger(__name__)


class FamilyHandler(RemediationHandler):
    """Routes to the right variant handler of one family."""

    def __init__(
        self,
        spec: FamilySpec,
        router: VariantRouter,
        detectors: Mapping[str, Detector] = DETECTORS,
    ):
        self._spec = spec
        self._router = router
        self._detectors = detectors
        self.description = spec.description

    @property
    def name(self) -> str:
        return self._spec.name

    def run(self, ctx: HandlerContext, *args: str) -> HandlerResult:
        unavailable: list[str] = []

        for selector in self._spec.selectors:
            detect = self._detectors.get(selector.detector)
            configured = ctx.config.get(selector.config_key, AUTO_VARIANT)

            def _detector(detect: Detector | None = detect) -> str | None:
                if detect is None:
                    logger.warning("Unknown detector %r for %s", selector.detector, self.name)
                    return None
                return detect(ctx.runner)

            try:
                ref = self._router.resolve_handler(self.name, configured, _detector)
            except NoHandlerAvailable as e:
                logger.info("%s (via %s)", e, selector.config_key)
                unavailable.append(str(e))
                continue

            logger.info("Using %s handler %s", self.name, ref.variant)
            result = ref(ctx, *args)
            if not isinstance(result, HandlerResult):
                result = HandlerResult(success=bool(result))
            return HandlerResult(
                success=result.success,
                detail=f"[{ref.label}] {result.detail}".rstrip(),
                planned=result.planned,
            )

        reason = "; ".join(unavailable) or f"no selectors configured for {self.name}"
        return HandlerResult.ok(f"No autofix available: {reason}")
